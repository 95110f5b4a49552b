from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from recovery_planner.core.model import CommandGraph, CommandNode, GraphIssue

logger = logging.getLogger(__name__)


def build_graph(
    plan_id: str,
    tenant: str,
    nodes: Iterable[CommandNode],
    created_at: Optional[str] = None,
) -> CommandGraph:
    """Build an immutable graph snapshot from declared nodes.

    Duplicate ids are dropped (first occurrence wins) and reported as
    ``duplicate-id`` issues on the graph. Dangling dependency references are
    kept; the topology analyzer reports them.
    """

    kept: list[CommandNode] = []
    seen: dict[str, int] = {}
    issues: list[GraphIssue] = []

    for i, node in enumerate(nodes):
        if node.id in seen:
            issues.append(
                GraphIssue(
                    kind="duplicate-id",
                    node_id=node.id,
                    message=f"duplicate node id at position {i} dropped (first declared at {seen[node.id]})",
                )
            )
            continue
        seen[node.id] = i
        kept.append(node)

    if issues:
        logger.debug("plan %s: dropped %d duplicate node(s)", plan_id, len(issues))

    return CommandGraph(
        plan_id=plan_id,
        tenant=tenant,
        created_at=created_at or datetime.now(timezone.utc).isoformat(),
        nodes=tuple(kept),
        issues=tuple(issues),
    )


def rebuild_graph(graph: CommandGraph, nodes: Iterable[CommandNode]) -> CommandGraph:
    """Return a new snapshot for the same plan with a replaced node list."""
    return build_graph(graph.plan_id, graph.tenant, nodes)
