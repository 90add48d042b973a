import pytest

from stagekit.deferred import DeferredValue, LazyValue
from stagekit.graph import ArtifactRef, Dependency, GraphBuilder, StageGraph, StageNode


def _node(stage_id: str, *deps: Dependency, owner: str = "app") -> StageNode:
    return StageNode(
        id=stage_id,
        kind="step",
        owner=owner,
        outputs=(ArtifactRef(f"out/{stage_id}", produced_by=stage_id, role="out"),),
        dependencies=deps,
    )


def test_dependency_rejects_unknown_kind():
    with pytest.raises(ValueError, match=r"Invalid dependency kind: soft"):
        Dependency("a", "soft")  # type: ignore[arg-type]


def test_stage_node_rejects_self_and_duplicate_dependencies():
    with pytest.raises(ValueError, match=r"cannot depend on itself"):
        _node("a", Dependency("a"))
    with pytest.raises(ValueError, match=r"duplicate dependency on b"):
        _node("a", Dependency("b"), Dependency("b", "ordering"))


def test_stage_node_outputs_must_be_produced_by_the_stage():
    with pytest.raises(ValueError, match=r"must be produced_by=a"):
        StageNode(id="a", kind="step", owner="app", outputs=(ArtifactRef("x", produced_by="b"),))


def test_stage_node_output_lookup_by_role():
    node = _node("a")
    assert node.output("out").logical_path == "out/a"
    with pytest.raises(KeyError, match=r"no output with role=missing"):
        node.output("missing")


def test_graph_distinguishes_data_and_ordering_edges():
    graph = StageGraph(
        stages=(
            _node("a"),
            _node("b", Dependency("a")),
            _node("c", Dependency("a"), Dependency("b", "ordering")),
        )
    )
    assert graph.get("c").depends_on == frozenset({"a", "b"})
    assert graph.get("c").dependency_kind("a") == "data"
    assert graph.get("c").dependency_kind("b") == "ordering"
    assert graph.get("c").dependency_kind("zzz") is None
    assert graph.edges() == (("a", "b", "data"), ("a", "c", "data"), ("b", "c", "ordering"))


def test_graph_rejects_duplicates_unknown_dependencies_and_cycles():
    with pytest.raises(ValueError, match=r"Duplicate stage id: a"):
        StageGraph(stages=(_node("a"), _node("a")))
    with pytest.raises(ValueError, match=r"depends on unknown stage\(s\): ghost"):
        StageGraph(stages=(_node("a", Dependency("ghost")),))
    with pytest.raises(ValueError, match=r"cycle among: a, b"):
        StageGraph(stages=(_node("a", Dependency("b")), _node("b", Dependency("a"))))


def test_topological_order_is_stable():
    graph = StageGraph(
        stages=(
            _node("late", Dependency("first")),
            _node("first"),
            _node("other"),
        )
    )
    assert [stage.id for stage in graph.topological_order()] == ["first", "late", "other"]


def test_graph_builder_resolves_lazy_locations_on_build():
    module: DeferredValue[str] = DeferredValue("app.module_name")
    builder = GraphBuilder(owner="app")
    location = LazyValue(lambda: f"exe/{module.get()}", description="exe")
    link = builder.add(
        StageNode(
            id="link",
            kind="link",
            owner="app",
            outputs=(ArtifactRef(location, produced_by="link", role="binary"),),
            properties={"module": LazyValue(module.get, description="module")},
        )
    )
    builder.publish("app:binary", link.output("binary"))

    module.set("Tool")
    graph = builder.build()

    assert graph.get("link").output("binary").location == "exe/Tool"
    assert graph.get("link").properties["module"] == "Tool"
    assert graph.output("app:binary").logical_path == "exe/Tool"


def test_graph_builder_rejects_foreign_and_forward_references():
    builder = GraphBuilder(owner="app")
    with pytest.raises(ValueError, match=r"belongs to other"):
        builder.add(_node("a", owner="other"))
    with pytest.raises(ValueError, match=r"depends on unknown stage later"):
        builder.add(_node("a", Dependency("later")))
    builder.add(_node("a"))
    with pytest.raises(ValueError, match=r"Duplicate stage id: a"):
        builder.add(_node("a"))


def test_union_keeps_graphs_independent():
    one = StageGraph(stages=(_node("a", owner="x"),), outputs={"x:out": ArtifactRef("out/a", produced_by="a")})
    two = StageGraph(stages=(_node("b", owner="y"),), outputs={"y:out": ArtifactRef("out/b", produced_by="b")})
    merged = StageGraph.union([one, two])

    assert merged.stage_ids == ("a", "b")
    assert merged.edges() == ()
    assert [stage.id for stage in merged.owned_by("y")] == ["b"]
    assert set(merged.outputs) == {"x:out", "y:out"}

    with pytest.raises(ValueError, match=r"Duplicate published output key: x:out"):
        StageGraph.union([one, one])


def test_to_dict_lists_stages_in_dependency_order():
    graph = StageGraph(stages=(_node("b", Dependency("a", "ordering")), _node("a")))
    payload = graph.to_dict()
    assert [stage["id"] for stage in payload["stages"]] == ["a", "b"]
    assert payload["stages"][1]["depends_on"] == [{"stage": "a", "kind": "ordering"}]
    assert payload["stages"][0]["outputs"] == [{"path": "out/a", "produced_by": "a", "role": "out"}]
