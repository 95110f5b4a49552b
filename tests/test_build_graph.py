import dataclasses

from recovery_planner.core.graph.build_graph import build_graph, rebuild_graph
from recovery_planner.core.model import CommandNode, Dependency, Edge


def _node(nid: str, *deps: Dependency, label: str | None = None) -> CommandNode:
    return CommandNode(id=nid, label=label or nid, dependencies=tuple(deps))


def test_edges_are_derived_from_dependencies():
    g = build_graph(
        "P1",
        "acme",
        [
            _node("A"),
            _node("B", Dependency("A", criticality=5, coupling=0.2)),
            _node("C", Dependency("A", criticality=1, coupling=0.9, optional=True)),
        ],
    )
    assert g.edges == (
        Edge(source="A", target="B", weight=0.2, criticality=5, optional=False),
        Edge(source="A", target="C", weight=0.9, criticality=1, optional=True),
    )
    assert g.issues == ()


def test_duplicate_ids_keep_first_occurrence():
    g = build_graph("P1", "acme", [_node("a", label="first"), _node("b"), _node("a", label="second")])
    assert [n.id for n in g.nodes] == ["a", "b"]
    assert g.nodes_by_id["a"].label == "first"
    assert len(g.issues) == 1
    assert g.issues[0].kind == "duplicate-id"
    assert g.issues[0].node_id == "a"


def test_dangling_dependency_still_yields_edge():
    g = build_graph("P1", "acme", [_node("b", Dependency("ghost"))])
    assert [(e.source, e.target) for e in g.edges] == [("ghost", "b")]
    assert g.issues == ()


def test_created_at_default_and_override():
    g = build_graph("P1", "acme", [])
    assert g.created_at
    g2 = build_graph("P1", "acme", [], created_at="2024-01-01T00:00:00+00:00")
    assert g2.created_at == "2024-01-01T00:00:00+00:00"


def test_graph_is_immutable_and_rebuild_returns_new_value():
    g = build_graph("P1", "acme", [_node("A")])
    try:
        g.plan_id = "other"  # type: ignore[misc]
        assert False, "expected FrozenInstanceError"
    except dataclasses.FrozenInstanceError:
        pass

    g2 = rebuild_graph(g, [_node("A"), _node("B", Dependency("A"))])
    assert g2 is not g
    assert g2.plan_id == "P1"
    assert len(g.edges) == 0
    assert len(g2.edges) == 1
