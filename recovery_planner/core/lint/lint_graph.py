from __future__ import annotations

from typing import Optional

from recovery_planner.core.errors import PlanLintError
from recovery_planner.core.model import CommandGraph, TopologyReport
from recovery_planner.core.topology.analyze import analyze, find_back_edges


# Graph lint rules:
# - L_GRAPH_EMPTY: scenario declares no nodes
# - L_DUPLICATE_ID: node id declared more than once (later copies dropped)
# - L_MISSING_PREREQUISITE: node unresolved because of an unknown/unresolved prerequisite
# - L_CYCLE_DETECTED: dependency cycle exists
# - L_EDGE_DENSITY: more than two edges per node
# - L_NODE_MISSING_OWNER: node has no owning team

_ISSUE_CODES = {
    "duplicate-id": "L_DUPLICATE_ID",
    "missing-prerequisite": "L_MISSING_PREREQUISITE",
}


def lint_graph(
    graph: CommandGraph,
    report: Optional[TopologyReport] = None,
    file: Optional[str] = None,
) -> list[PlanLintError]:
    """Lint a built graph.

    Runs on top of structural analysis and reports advisory findings in the
    same coded envelope the validator uses.
    """

    if report is None:
        report = analyze(graph)

    errors: list[PlanLintError] = []

    if not graph.nodes:
        errors.append(
            PlanLintError(
                code="L_GRAPH_EMPTY",
                message="scenario declares no nodes",
                file=file,
                path="nodes",
            )
        )
        return errors

    for issue in report.issues:
        code = _ISSUE_CODES.get(issue.kind)
        if code is None:
            continue
        errors.append(
            PlanLintError(
                code=code,
                message=issue.message,
                file=file,
                path=f"nodes[{issue.node_id}]",
            )
        )

    # One finding per back edge names the cycle entry point.
    for u, v in find_back_edges(graph):
        errors.append(
            PlanLintError(
                code="L_CYCLE_DETECTED",
                message=f"dependency cycle detected: {u} -> {v}",
                file=file,
                path=f"nodes[{v}].depends_on",
            )
        )

    edge_count = report.metrics.edge_count
    if edge_count > 2 * len(graph.nodes):
        errors.append(
            PlanLintError(
                code="L_EDGE_DENSITY",
                message=f"edge density {edge_count} exceeds 2x node count {len(graph.nodes)}",
                file=file,
                path="nodes",
            )
        )

    for n in graph.nodes:
        if not n.owner or not n.owner.strip():
            errors.append(
                PlanLintError(
                    code="L_NODE_MISSING_OWNER",
                    message="node must specify a non-empty owner",
                    file=file,
                    path=f"nodes[{n.id}].owner",
                )
            )

    return _sorted(errors)


def _sorted(errors: list[PlanLintError]) -> list[PlanLintError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
