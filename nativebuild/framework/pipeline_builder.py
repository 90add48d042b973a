"""Stage-graph synthesis for native binaries.

One binary descriptor becomes a strict chain of stages:

    compile -> link -> [extractSymbols -> stripSymbols] -> [install]

- Symbol stages exist as a pair iff the binary is both debuggable and optimized.
  Both read the raw link output; stripSymbols follows extractSymbols through an
  ordering-only dependency (no artifact flows between them).
- Install exists iff the binary is an executable, and consumes the published
  binary: the stripped output when symbols were stripped, else the link output.

`configure()` wires the stages with lazy output locations. `finalize()` expands
every location and returns a `StageGraph`, or raises without publishing
anything.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Literal, TypeAlias

from nativebuild.framework.descriptor import BinaryDescriptor
from nativebuild.framework.errors import ConfigurationError, NoToolchainFound
from nativebuild.framework.names import Names
from nativebuild.framework.paths import PathPolicy, module_name_value
from nativebuild.framework.toolchain import CURRENT_PLATFORM, ToolchainResolver, ToolProvider
from stagekit.deferred import UnresolvedValueError
from stagekit.graph import ArtifactRef, Dependency, GraphBuilder, StageGraph, StageNode

StageKind: TypeAlias = Literal["compile", "link", "extract_symbols", "strip_symbols", "install"]
ALLOWED_STAGE_KINDS: tuple[str, ...] = ("compile", "link", "extract_symbols", "strip_symbols", "install")

ENABLE_TESTING_ARG = "-enable-testing"
LIBRARY_ONLY_ARG = "-parse-as-library"

logger = logging.getLogger(__name__)


def output_key(binary: str, name: str) -> str:
    return f"{binary}:{name}"


def stage_node(kind: StageKind, **fields: Any) -> StageNode:
    if kind not in ALLOWED_STAGE_KINDS:
        raise ValueError(f"Unknown stage kind: {kind} (allowed: {', '.join(ALLOWED_STAGE_KINDS)})")
    return StageNode(kind=kind, **fields)


@dataclass(frozen=True)
class BinaryPipeline:
    """Configured (not yet finalized) stages of one binary."""

    descriptor: BinaryDescriptor
    names: Names
    provider: ToolProvider
    graph: GraphBuilder
    compile: StageNode
    link: StageNode
    extract_symbols: StageNode | None
    strip_symbols: StageNode | None
    install: StageNode | None

    @property
    def stages(self) -> tuple[StageNode, ...]:
        return self.graph.stages

    @property
    def published_binary(self) -> ArtifactRef:
        return self.graph.published(output_key(self.names.binary, "published_binary"))

    def finalize(self) -> StageGraph:
        try:
            graph = self.graph.build()
        except UnresolvedValueError as exc:
            raise ConfigurationError(
                f"Unresolved value while finalizing stages: {exc.label}",
                binary=self.names.binary,
                field=exc.label,
            ) from exc
        logger.info(
            "Synthesized %d stages for binary %s (published=%s)",
            len(graph.stages),
            self.names.binary,
            graph.output(output_key(self.names.binary, "published_binary")).logical_path,
        )
        return graph


class PipelineBuilder:
    def __init__(
        self,
        toolchains: ToolchainResolver,
        *,
        paths: PathPolicy | None = None,
        platform: str = CURRENT_PLATFORM,
        language: str = "swift",
    ) -> None:
        if not isinstance(platform, str) or not platform.strip():
            raise ValueError("platform must be a non-empty string")
        if not isinstance(language, str) or not language.strip():
            raise ValueError("language must be a non-empty string")
        self.toolchains = toolchains
        self.paths = paths or PathPolicy()
        self.platform = platform.strip()
        self.language = language.strip().lower()

    def _resolve_toolchain(self, descriptor: BinaryDescriptor) -> ToolProvider:
        try:
            return self.toolchains.resolve(self.platform)
        except NoToolchainFound as exc:
            raise NoToolchainFound(
                exc.platform,
                available=exc.available,
                suggestions=exc.suggestions,
                binary=descriptor.name,
            ) from exc

    def _context(self, provider: ToolProvider) -> dict[str, Any]:
        return {"platform": provider.platform, "toolchain": provider.toolchain}

    def configure(self, descriptor: BinaryDescriptor) -> BinaryPipeline:
        if not isinstance(descriptor, BinaryDescriptor):
            raise TypeError(f"descriptor must be a BinaryDescriptor (type={type(descriptor).__name__})")

        names = Names.of(descriptor.name)
        provider = self._resolve_toolchain(descriptor)
        graph = GraphBuilder(owner=names.binary)

        compile_stage = graph.add(self.compile(descriptor, names, provider))
        link_stage = graph.add(self.link(descriptor, names, provider, compile_stage))
        published = link_stage.output("binary")

        extract_stage: StageNode | None = None
        strip_stage: StageNode | None = None
        if descriptor.flags.strips_symbols:
            extract_stage, strip_stage = self.strip_symbols(descriptor, names, provider, link_stage)
            graph.add(extract_stage)
            graph.add(strip_stage)
            published = strip_stage.output("binary")
            graph.publish(output_key(names.binary, "symbol_file"), extract_stage.output("symbols"))

        graph.publish(output_key(names.binary, "object_dir"), compile_stage.output("objects"))
        graph.publish(output_key(names.binary, "module_file"), compile_stage.output("module"))
        graph.publish(output_key(names.binary, "published_binary"), published)

        install_stage: StageNode | None = None
        if descriptor.kind == "executable":
            install_stage = graph.add(self.install(descriptor, names, provider, published))
            graph.publish(output_key(names.binary, "install_dir"), install_stage.output("install_dir"))
            graph.publish(output_key(names.binary, "run_script"), install_stage.output("run_script"))
        elif descriptor.kind == "shared_library":
            pass
        else:
            raise AssertionError(f"Unhandled binary kind: {descriptor.kind}")

        logger.debug(
            "Configured binary %s: stages=%s",
            names.binary,
            ", ".join(stage.id for stage in graph.stages),
        )
        return BinaryPipeline(
            descriptor=descriptor,
            names=names,
            provider=provider,
            graph=graph,
            compile=compile_stage,
            link=link_stage,
            extract_symbols=extract_stage,
            strip_symbols=strip_stage,
            install=install_stage,
        )

    def compile(self, descriptor: BinaryDescriptor, names: Names, provider: ToolProvider) -> StageNode:
        stage_id = names.compile_task_name(self.language)

        compiler_args: list[str] = []
        if descriptor.flags.testable:
            compiler_args.append(ENABLE_TESTING_ARG)
        if descriptor.kind == "shared_library":
            compiler_args.append(LIBRARY_ONLY_ARG)
        elif descriptor.kind != "executable":
            raise AssertionError(f"Unhandled binary kind: {descriptor.kind}")

        inputs = [ArtifactRef(source, role="source") for source in descriptor.sources]
        inputs.extend(ArtifactRef(module, role="module_dependency") for module in descriptor.compile_modules)

        return stage_node(
            "compile",
            id=stage_id,
            owner=names.binary,
            inputs=tuple(inputs),
            outputs=(
                ArtifactRef(self.paths.object_dir(names), produced_by=stage_id, role="objects"),
                ArtifactRef(
                    self.paths.module_file(names, descriptor.module),
                    produced_by=stage_id,
                    role="module",
                ),
            ),
            properties={
                **self._context(provider),
                "language": self.language,
                "module_name": module_name_value(names, descriptor.module),
                "compiler_args": tuple(compiler_args),
                "debuggable": descriptor.flags.debuggable,
                "optimized": descriptor.flags.optimized,
            },
        )

    def link(
        self,
        descriptor: BinaryDescriptor,
        names: Names,
        provider: ToolProvider,
        compile_stage: StageNode,
    ) -> StageNode:
        stage_id = names.task_name("link")

        if descriptor.kind == "executable":
            output = self.paths.executable_file(names, descriptor.module, provider)
        elif descriptor.kind == "shared_library":
            # TODO: set the shared library install name/soname once the toolchain exposes it.
            output = self.paths.shared_library_file(names, descriptor.module, provider)
        else:
            raise AssertionError(f"Unhandled binary kind: {descriptor.kind}")

        inputs = [compile_stage.output("objects")]
        inputs.extend(ArtifactRef(library, role="library") for library in descriptor.link_libraries)

        return stage_node(
            "link",
            id=stage_id,
            owner=names.binary,
            inputs=tuple(inputs),
            outputs=(ArtifactRef(output, produced_by=stage_id, role="binary"),),
            dependencies=(Dependency(compile_stage.id, "data"),),
            properties={
                **self._context(provider),
                "output_kind": descriptor.kind,
                "debuggable": descriptor.flags.debuggable,
            },
        )

    def strip_symbols(
        self,
        descriptor: BinaryDescriptor,
        names: Names,
        provider: ToolProvider,
        link_stage: StageNode,
    ) -> tuple[StageNode, StageNode]:
        """Return (extractSymbols, stripSymbols) for a debuggable, optimized binary."""

        if not descriptor.flags.strips_symbols:
            raise ValueError(
                f"Symbol stripping requires debuggable and optimized flags (binary={names.binary})"
            )

        linked = link_stage.output("binary")
        extract_id = names.task_name("extractSymbols")
        strip_id = names.task_name("stripSymbols")

        extract = stage_node(
            "extract_symbols",
            id=extract_id,
            owner=names.binary,
            inputs=(linked,),
            outputs=(
                ArtifactRef(
                    self.paths.stripped_symbol_file(descriptor.kind, names, descriptor.module, provider),
                    produced_by=extract_id,
                    role="symbols",
                ),
            ),
            dependencies=(Dependency(link_stage.id, "data"),),
            properties=self._context(provider),
        )
        strip = stage_node(
            "strip_symbols",
            id=strip_id,
            owner=names.binary,
            inputs=(linked,),
            outputs=(
                ArtifactRef(
                    self.paths.stripped_binary_file(descriptor.kind, names, descriptor.module, provider),
                    produced_by=strip_id,
                    role="binary",
                ),
            ),
            dependencies=(
                Dependency(link_stage.id, "data"),
                Dependency(extract_id, "ordering"),
            ),
            properties=self._context(provider),
        )
        return extract, strip

    def install(
        self,
        descriptor: BinaryDescriptor,
        names: Names,
        provider: ToolProvider,
        published_binary: ArtifactRef,
    ) -> StageNode:
        if descriptor.kind != "executable":
            raise ValueError(f"Install stages are only created for executables (binary={names.binary})")
        if published_binary.produced_by is None:
            raise ValueError(f"Published binary of {names.binary} must be produced by a stage")

        stage_id = names.task_name("install")
        inputs = [published_binary]
        inputs.extend(ArtifactRef(library, role="runtime_library") for library in descriptor.runtime_libraries)

        return stage_node(
            "install",
            id=stage_id,
            owner=names.binary,
            inputs=tuple(inputs),
            outputs=(
                ArtifactRef(self.paths.install_dir(names), produced_by=stage_id, role="install_dir"),
                ArtifactRef(
                    self.paths.run_script_file(names, descriptor.module, provider),
                    produced_by=stage_id,
                    role="run_script",
                ),
            ),
            dependencies=(Dependency(published_binary.produced_by, "data"),),
            properties={
                **self._context(provider),
                "runtime_libraries": descriptor.runtime_libraries,
            },
        )

    def synthesize(self, descriptor: BinaryDescriptor) -> StageGraph:
        return self.configure(descriptor).finalize()

    def configure_all(self, descriptors: Iterable[BinaryDescriptor]) -> list[BinaryPipeline]:
        pipelines: list[BinaryPipeline] = []
        seen: set[str] = set()
        for descriptor in descriptors:
            if descriptor.name in seen:
                raise ConfigurationError("Duplicate binary name", binary=descriptor.name, field="name")
            seen.add(descriptor.name)
            pipelines.append(self.configure(descriptor))
        return pipelines

    def synthesize_all(self, descriptors: Iterable[BinaryDescriptor]) -> StageGraph:
        """Synthesize independent binaries into one graph; no edges cross binaries."""

        return finalize_all(self.configure_all(descriptors))


def finalize_all(pipelines: Iterable[BinaryPipeline]) -> StageGraph:
    graphs = [pipeline.finalize() for pipeline in pipelines]
    try:
        return StageGraph.union(graphs)
    except ValueError as exc:
        raise ConfigurationError(f"Binaries cannot share one build graph: {exc}") from exc
