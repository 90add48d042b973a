import logging

import pytest

from nativebuild.framework.descriptor import BinaryDescriptor, BinaryFlags
from nativebuild.framework.errors import ConfigurationError, NoToolchainFound
from nativebuild.framework.paths import PathPolicy
from nativebuild.framework.pipeline_builder import (
    ENABLE_TESTING_ARG,
    LIBRARY_ONLY_ARG,
    PipelineBuilder,
    output_key,
    stage_node,
)
from nativebuild.framework.toolchain import ToolchainRegistry


def _builder(platform: str = "linux") -> PipelineBuilder:
    return PipelineBuilder(ToolchainRegistry.default(), paths=PathPolicy("build"), platform=platform)


def _descriptor(
    *,
    name: str = "release",
    kind: str = "executable",
    module: str | None = "MyApp",
    debuggable: bool = True,
    optimized: bool = True,
    testable: bool = False,
) -> BinaryDescriptor:
    return BinaryDescriptor(
        name=name,
        kind=kind,  # type: ignore[arg-type]
        sources=("src/main.swift", "src/util.swift"),
        compile_modules=("modules/Dep.module",),
        link_libraries=("lib/libdep.so",),
        runtime_libraries=("lib/libruntime.so",),
        flags=BinaryFlags(debuggable=debuggable, optimized=optimized, testable=testable),
        module_name=module,
    )


def test_debuggable_optimized_executable_gets_full_chain():
    graph = _builder().synthesize(_descriptor())

    assert [stage.id for stage in graph.topological_order()] == [
        "compileReleaseSwift",
        "linkRelease",
        "extractSymbolsRelease",
        "stripSymbolsRelease",
        "installRelease",
    ]
    assert graph.get("linkRelease").depends_on == frozenset({"compileReleaseSwift"})
    assert graph.get("extractSymbolsRelease").depends_on == frozenset({"linkRelease"})
    assert "extractSymbolsRelease" in graph.get("stripSymbolsRelease").depends_on
    assert graph.get("installRelease").depends_on == frozenset({"stripSymbolsRelease"})

    published = graph.output(output_key("release", "published_binary"))
    assert published.produced_by == "stripSymbolsRelease"
    assert published.logical_path == "build/exe/release/stripped/MyApp"


def test_strip_follows_extract_through_ordering_edge_only():
    graph = _builder().synthesize(_descriptor())
    extract = graph.get("extractSymbolsRelease")
    strip = graph.get("stripSymbolsRelease")

    assert strip.dependency_kind("extractSymbolsRelease") == "ordering"
    assert strip.dependency_kind("linkRelease") == "data"

    linked = graph.get("linkRelease").output("binary")
    assert extract.inputs == (linked,)
    assert strip.inputs == (linked,)
    assert extract.output("symbols").logical_path == "build/exe/release/stripped/MyApp.debug"
    assert all(artifact.produced_by != extract.id for artifact in strip.inputs)


def test_not_optimized_executable_skips_symbol_stages():
    graph = _builder().synthesize(_descriptor(optimized=False))

    assert [stage.id for stage in graph.topological_order()] == [
        "compileReleaseSwift",
        "linkRelease",
        "installRelease",
    ]
    assert graph.by_kind("extract_symbols") == ()
    assert graph.by_kind("strip_symbols") == ()
    assert graph.get("installRelease").depends_on == frozenset({"linkRelease"})

    published = graph.output(output_key("release", "published_binary"))
    assert published == graph.get("linkRelease").output("binary")


@pytest.mark.parametrize("debuggable, optimized", [(False, True), (False, False), (True, False)])
def test_symbol_stages_exist_only_when_debuggable_and_optimized(debuggable, optimized):
    graph = _builder().synthesize(_descriptor(debuggable=debuggable, optimized=optimized))
    kinds = {stage.kind for stage in graph.stages}
    assert "extract_symbols" not in kinds
    assert "strip_symbols" not in kinds
    assert graph.output(output_key("release", "published_binary")).produced_by == "linkRelease"


def test_shared_library_gets_library_only_arg_and_no_install():
    graph = _builder().synthesize(
        _descriptor(name="releaseShared", kind="shared_library", module="Core", optimized=False)
    )

    assert [stage.kind for stage in graph.topological_order()] == ["compile", "link"]
    compile_stage = graph.get("compileReleaseSharedSwift")
    assert LIBRARY_ONLY_ARG in compile_stage.properties["compiler_args"]

    link = graph.get("linkReleaseShared")
    assert link.properties["output_kind"] == "shared_library"
    assert link.output("binary").logical_path == "build/lib/release/shared/libCore.so"
    assert output_key("releaseShared", "install_dir") not in graph.outputs


def test_stripped_shared_library_uses_executable_naming():
    graph = _builder().synthesize(_descriptor(kind="shared_library", module="Core"))
    strip = graph.get("stripSymbolsRelease")
    extract = graph.get("extractSymbolsRelease")

    assert graph.get("linkRelease").output("binary").logical_path == "build/lib/release/libCore.so"
    assert strip.output("binary").logical_path == "build/lib/release/stripped/Core"
    assert extract.output("symbols").logical_path == "build/lib/release/stripped/Core.debug"
    assert graph.output(output_key("release", "published_binary")).logical_path == "build/lib/release/stripped/Core"
    assert graph.by_kind("install") == ()


def test_compile_stage_inputs_outputs_and_properties():
    graph = _builder().synthesize(_descriptor(testable=True, optimized=False))
    compile_stage = graph.get("compileReleaseSwift")

    assert [a.logical_path for a in compile_stage.inputs] == [
        "src/main.swift",
        "src/util.swift",
        "modules/Dep.module",
    ]
    assert compile_stage.output("objects").logical_path == "build/obj/release"
    assert compile_stage.output("module").logical_path == "build/modules/release/MyApp.module"
    assert compile_stage.properties["compiler_args"] == (ENABLE_TESTING_ARG,)
    assert compile_stage.properties["module_name"] == "MyApp"
    assert compile_stage.properties["debuggable"] is True
    assert compile_stage.properties["optimized"] is False
    assert compile_stage.properties["platform"] == "linux"
    assert compile_stage.properties["toolchain"] == "gcc"


def test_link_consumes_objects_and_link_libraries_in_order():
    graph = _builder().synthesize(_descriptor())
    link = graph.get("linkRelease")

    assert link.inputs[0].produced_by == "compileReleaseSwift"
    assert [a.logical_path for a in link.inputs[1:]] == ["lib/libdep.so"]
    assert link.properties["debuggable"] is True


def test_install_stage_outputs_and_runtime_libraries():
    graph = _builder(platform="windows").synthesize(_descriptor(optimized=False))
    install = graph.get("installRelease")

    assert install.inputs[0].logical_path == "build/exe/release/MyApp.exe"
    assert [a.logical_path for a in install.inputs[1:]] == ["lib/libruntime.so"]
    assert install.output("install_dir").logical_path == "build/install/release"
    assert install.output("run_script").logical_path == "build/install/release/MyApp.bat"
    assert install.properties["runtime_libraries"] == ("lib/libruntime.so",)
    assert graph.output(output_key("release", "run_script")).logical_path == "build/install/release/MyApp.bat"


def test_module_name_may_be_set_after_configuration():
    descriptor = _descriptor(module=None)
    pipeline = _builder().configure(descriptor)

    descriptor.set_module_name("LateApp")
    graph = pipeline.finalize()

    assert graph.get("linkRelease").output("binary").logical_path == "build/exe/release/LateApp"
    assert graph.get("compileReleaseSwift").properties["module_name"] == "LateApp"


def test_missing_module_name_fails_finalization_with_binary_name():
    pipeline = _builder().configure(_descriptor(module=None))

    with pytest.raises(ConfigurationError, match=r"binary=release field=module_name"):
        pipeline.finalize()


def test_missing_module_name_fails_synthesize_without_partial_graph():
    builder = _builder()
    good = _descriptor(name="debug", module="App")
    bad = _descriptor(name="release", module=None)

    with pytest.raises(ConfigurationError, match=r"binary=release"):
        builder.synthesize_all([good, bad])


def test_unknown_platform_raises_no_toolchain_found_naming_binary():
    with pytest.raises(NoToolchainFound, match=r"binary=release field=toolchain") as excinfo:
        _builder(platform="plan9").synthesize(_descriptor())
    assert isinstance(excinfo.value, ConfigurationError)
    assert excinfo.value.platform == "plan9"


def test_synthesize_all_keeps_binaries_independent():
    graph = _builder().synthesize_all(
        [
            _descriptor(name="debug", optimized=False),
            _descriptor(name="release"),
            _descriptor(name="releaseShared", kind="shared_library", module="Core"),
        ]
    )

    owners = {stage.id: stage.owner for stage in graph.stages}
    for upstream, downstream, _kind in graph.edges():
        assert owners[upstream] == owners[downstream]
    assert len(graph.owned_by("debug")) == 3
    assert len(graph.owned_by("release")) == 5
    assert len(graph.owned_by("releaseShared")) == 4


def test_synthesize_all_rejects_duplicate_binaries_and_colliding_stage_ids():
    builder = _builder()
    with pytest.raises(ConfigurationError, match=r"Duplicate binary name \(binary=release field=name\)"):
        builder.synthesize_all([_descriptor(), _descriptor()])

    with pytest.raises(ConfigurationError, match=r"Duplicate stage id: compileReleaseSwift"):
        builder.synthesize_all([_descriptor(name="release"), _descriptor(name="Release")])


def test_main_variant_uses_unprefixed_stage_ids():
    graph = _builder().synthesize(_descriptor(name="main", optimized=False))
    assert graph.stage_ids == ("compileSwift", "link", "install")
    assert graph.get("link").output("binary").logical_path == "build/exe/main/MyApp"


def test_every_stage_carries_platform_and_toolchain():
    graph = _builder(platform="macos").synthesize(_descriptor())
    for stage in graph.stages:
        assert stage.properties["platform"] == "macos"
        assert stage.properties["toolchain"] == "clang"


def test_synthesis_logs_summary(caplog):
    caplog.set_level(logging.INFO, logger="nativebuild.framework.pipeline_builder")
    _builder().synthesize(_descriptor())
    assert "Synthesized 5 stages for binary release" in caplog.text


def test_strip_symbols_refuses_binaries_that_should_not_strip():
    builder = _builder()
    descriptor = _descriptor(optimized=False)
    pipeline = builder.configure(descriptor)
    with pytest.raises(ValueError, match=r"requires debuggable and optimized"):
        builder.strip_symbols(descriptor, pipeline.names, pipeline.provider, pipeline.link)


def test_configured_pipeline_exposes_stages_and_published_binary_before_finalize():
    descriptor = _descriptor(module=None)
    pipeline = _builder().configure(descriptor)

    assert [stage.id for stage in pipeline.stages] == [
        "compileReleaseSwift",
        "linkRelease",
        "extractSymbolsRelease",
        "stripSymbolsRelease",
        "installRelease",
    ]
    assert pipeline.published_binary.produced_by == "stripSymbolsRelease"

    descriptor.set_module_name("Late")
    assert pipeline.published_binary.logical_path == "build/exe/release/stripped/Late"


def test_stage_node_rejects_kinds_outside_the_build_vocabulary():
    node = stage_node("link", id="linkRelease", owner="release")
    assert node.kind == "link"

    with pytest.raises(ValueError, match=r"Unknown stage kind: archive"):
        stage_node("archive", id="archiveRelease", owner="release")  # type: ignore[arg-type]
