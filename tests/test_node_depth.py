from recovery_planner.core.graph.build_graph import build_graph
from recovery_planner.core.model import CommandNode, Dependency
from recovery_planner.core.topology.analyze import compute_depths, node_depth


def _node(nid: str, *deps: str) -> CommandNode:
    return CommandNode(id=nid, label=nid, dependencies=tuple(Dependency(d) for d in deps))


def test_depth_is_longest_prerequisite_chain():
    g = build_graph("P", "t", [_node("a"), _node("b", "a"), _node("c", "a", "b"), _node("d", "a")])
    assert node_depth(g, "a") == 0
    assert node_depth(g, "b") == 1
    assert node_depth(g, "c") == 2
    assert node_depth(g, "d") == 1


def test_unresolvable_nodes_have_no_depth():
    g = build_graph("P", "t", [_node("x", "y"), _node("y", "x"), _node("z", "x"), _node("m", "ghost"), _node("ok")])
    depths = compute_depths(g)
    assert depths == {"x": None, "y": None, "z": None, "m": None, "ok": 0}
    assert node_depth(g, "unknown-id") is None


def test_memo_is_scoped_to_the_call():
    g1 = build_graph("P", "t", [_node("a"), _node("b", "a")])
    g2 = build_graph("P", "t", [_node("root"), _node("a", "root"), _node("b", "a")])
    assert node_depth(g1, "b") == 1
    assert node_depth(g2, "b") == 2

    memo: dict = {}
    assert node_depth(g2, "b", memo) == 2
    assert memo == {"root": 0, "a": 1, "b": 2}


def test_deep_chain_does_not_recurse():
    n = 5000
    nodes = [_node("n0")] + [_node(f"n{i}", f"n{i - 1}") for i in range(1, n)]
    g = build_graph("P", "t", nodes)
    assert node_depth(g, f"n{n - 1}") == n - 1
