from __future__ import annotations

from typing import Optional

from recovery_planner.core.model import CommandGraph, CommandNode, NodePriority


SCORE_FLOOR = 1
SCORE_CEILING = 100


def raw_score(node: CommandNode, position: int, total_nodes: int) -> float:
    """Unclamped priority: 120 - 2*position + sum(criticality) - 2*sum(coupling)."""
    position = min(max(0, position), max(0, total_nodes - 1))
    criticality = sum(dep.criticality for dep in node.dependencies)
    coupling = sum(dep.coupling for dep in node.dependencies)
    return 120 - 2 * position + criticality - 2 * coupling


def score_node(node: CommandNode, position: int, total_nodes: int) -> int:
    raw = raw_score(node, position, total_nodes)
    return int(round(min(SCORE_CEILING, max(SCORE_FLOOR, raw))))


def score_priorities(graph: CommandGraph, order: list[str], residual: Optional[list[str]] = None) -> dict[str, NodePriority]:
    """Score every node by its planned position.

    Ordered nodes come first, then residual ones; positions follow that
    sequence. Scores only rank nodes; they never alter execution order.
    """
    by_id = graph.nodes_by_id
    ordered = set(order)
    sequence = list(order) + [nid for nid in (residual or []) if nid not in ordered]
    total = len(sequence)

    out: dict[str, NodePriority] = {}
    for position, nid in enumerate(sequence):
        node = by_id[nid]
        out[nid] = NodePriority(
            node_id=nid,
            position=position,
            score=score_node(node, position, total),
            raw=raw_score(node, position, total),
        )
    return out


def rank_priorities(priorities: dict[str, NodePriority]) -> list[NodePriority]:
    # Clamped scores tie at the ceiling; the raw value keeps the ranking informative.
    return sorted(priorities.values(), key=lambda p: (-p.raw, p.position))
