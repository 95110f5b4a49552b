import time

from recovery_planner.core.graph.build_graph import build_graph
from recovery_planner.core.model import CommandNode, Dependency, HealthMetrics
from recovery_planner.core.topology.analyze import (
    analyze,
    critical_path,
    find_back_edges,
    find_roots,
    health_metrics,
    topological_order,
)


def _node(nid: str, *deps: str, minutes: float = 0.0) -> CommandNode:
    return CommandNode(id=nid, label=nid, duration_minutes=minutes, dependencies=tuple(Dependency(d) for d in deps))


def _abc():
    return build_graph(
        "P",
        "t",
        [
            CommandNode(id="A", label="A"),
            CommandNode(id="B", label="B", dependencies=(Dependency("A", criticality=5, coupling=0.2),)),
            CommandNode(id="C", label="C", dependencies=(Dependency("A", criticality=1, coupling=0.9),)),
        ],
    )


def test_order_for_fan_out_example():
    order, residual, issues = topological_order(_abc())
    assert order == ["A", "B", "C"]
    assert residual == []
    assert issues == []


def test_ties_follow_declaration_order():
    g = build_graph("P", "t", [_node("C"), _node("B"), _node("A")])
    order, _, _ = topological_order(g)
    assert order == ["C", "B", "A"]
    assert find_roots(g) == ["C", "B", "A"]


def test_two_cycle_is_residual_not_error():
    g = build_graph("P", "t", [_node("X", "Y"), _node("Y", "X")])
    order, residual, issues = topological_order(g)
    assert order == []
    assert residual == ["X", "Y"]
    assert [i.kind for i in issues] == ["cycle", "cycle"]
    assert set(issues[0].related) == {"X", "Y"}
    assert health_metrics(g).has_cycles is True
    assert find_back_edges(g) != []


def test_self_dependency_is_a_cycle():
    g = build_graph("P", "t", [_node("S", "S")])
    report = analyze(g)
    assert report.residual == ("S",)
    assert report.issues[0].kind == "cycle"
    assert find_back_edges(g) == [("S", "S")]


def test_missing_prerequisite_and_blocked_dependents():
    g = build_graph("P", "t", [_node("a"), _node("b", "ghost"), _node("c", "b")])
    report = analyze(g)
    assert report.order == ("a",)
    assert report.residual == ("b", "c")
    by_node = {i.node_id: i for i in report.issues}
    assert by_node["b"].kind == "missing-prerequisite"
    assert by_node["b"].related == ("ghost",)
    assert by_node["c"].kind == "missing-prerequisite"
    assert "blocked by unresolved prerequisite: b" in by_node["c"].message
    assert report.metrics.has_cycles is False
    assert find_back_edges(g) == []
    assert find_roots(g) == ["a"]


def test_node_behind_cycle_is_reported_as_cycle():
    g = build_graph("P", "t", [_node("X", "Y"), _node("Y", "X"), _node("Z", "X")])
    report = analyze(g)
    by_node = {i.node_id: i for i in report.issues}
    assert by_node["Z"].kind == "cycle"
    assert "blocked by dependency cycle" in by_node["Z"].message


def test_duplicate_issue_is_carried_onto_report():
    g = build_graph("P", "t", [_node("a"), _node("a")])
    report = analyze(g)
    assert [i.kind for i in report.issues] == ["duplicate-id"]
    assert report.order == ("a",)


def test_metrics_and_fan_degrees():
    report = analyze(_abc())
    assert report.fan_out == {"A": 2, "B": 0, "C": 0}
    assert report.fan_in == {"A": 0, "B": 1, "C": 1}
    m = report.metrics
    assert m.node_count == 3
    assert m.edge_count == 2
    assert abs(m.average_fan_in - 2 / 3) < 1e-9
    assert abs(m.average_fan_out - 2 / 3) < 1e-9
    assert m.has_cycles is False
    assert m.max_depth == 1
    assert report.depths == {"A": 0, "B": 1, "C": 1}


def test_empty_graph_is_zeroed():
    report = analyze(build_graph("P", "t", []))
    assert report.order == ()
    assert report.residual == ()
    assert report.issues == ()
    assert report.metrics == HealthMetrics()
    assert report.critical_path == ()
    assert report.critical_path_minutes == 0.0


def test_critical_path_follows_longest_duration_chain():
    g = build_graph(
        "P",
        "t",
        [
            _node("snapshot", minutes=10),
            _node("drain", "snapshot", minutes=5),
            _node("failover", "snapshot", minutes=20),
            _node("restart", "drain", "failover", minutes=8),
        ],
    )
    path, minutes = critical_path(g)
    assert path == ["snapshot", "failover", "restart"]
    assert minutes == 38


def test_cycle_probes_agree_on_mixed_graph():
    g = build_graph(
        "P",
        "t",
        [_node("a"), _node("b", "a", "d"), _node("c", "b"), _node("d", "c"), _node("e", "ghost")],
    )
    report = analyze(g)
    assert report.metrics.has_cycles is True
    assert bool(find_back_edges(g)) is True
    assert set(report.residual) == {"b", "c", "d", "e"}


def test_separate_cycles_get_their_own_members():
    g = build_graph(
        "P",
        "t",
        [_node("a", "b"), _node("b", "a"), _node("s", "s"), _node("c", "d"), _node("d", "c"), _node("z", "d")],
    )
    report = analyze(g)
    by_node = {i.node_id: i for i in report.issues}
    assert by_node["a"].related == ("a", "b")
    assert by_node["c"].related == ("c", "d")
    assert by_node["s"].related == ("s",)
    assert by_node["z"].kind == "cycle"
    assert by_node["z"].message == "blocked by dependency cycle through: d"
    assert by_node["z"].related == ("d",)


def test_large_ring_with_blocked_chain_stays_linear():
    ring = 2000
    nodes = [_node(f"n{i}", f"n{(i - 1) % ring}") for i in range(ring)]
    nodes += [_node("t0", "n0")] + [_node(f"t{i}", f"t{i - 1}") for i in range(1, 2000)]
    g = build_graph("P", "t", nodes)

    started = time.perf_counter()
    report = analyze(g)
    elapsed = time.perf_counter() - started

    assert report.order == ()
    assert len(report.residual) == 4000
    kinds = {i.kind for i in report.issues}
    assert kinds == {"cycle"}
    by_node = {i.node_id: i for i in report.issues}
    assert len(by_node["n5"].related) == ring
    assert by_node["n5"].message.endswith(f"({ring} nodes)")
    assert by_node["t1999"].related == ("t1998",)
    assert report.metrics.has_cycles is True
    assert elapsed < 5
