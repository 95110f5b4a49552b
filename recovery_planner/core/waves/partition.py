from __future__ import annotations

from typing import Optional

from recovery_planner.core.model import CommandGraph, Wave
from recovery_planner.core.topology.analyze import compute_depths


def partition_waves(
    graph: CommandGraph,
    max_nodes_per_wave: Optional[int] = None,
    depths: Optional[dict[str, Optional[int]]] = None,
) -> list[Wave]:
    """Group resolved nodes into parallel-safe waves.

    Nodes are bucketed by depth (ascending), declaration order inside a bucket,
    then each bucket is sliced into chunks of at most ``max_nodes_per_wave``.
    ``None`` disables slicing; values below 1 clamp to 1. Unresolved nodes
    (cycles, unknown prerequisites) are left out.
    """

    if depths is None:
        depths = compute_depths(graph)

    buckets: list[list[str]] = []
    for n in graph.nodes:
        d = depths.get(n.id)
        if d is None:
            continue
        while len(buckets) <= d:
            buckets.append([])
        buckets[d].append(n.id)

    size = None if max_nodes_per_wave is None else max(1, max_nodes_per_wave)

    waves: list[Wave] = []
    for depth, bucket in enumerate(buckets):
        for chunk in _chunks(bucket, size):
            waves.append(
                Wave(
                    plan_id=graph.plan_id,
                    index=len(waves),
                    depth=depth,
                    node_ids=tuple(chunk),
                )
            )
    return waves


def _chunks(items: list[str], size: Optional[int]) -> list[list[str]]:
    if not items:
        return []
    if size is None:
        return [items]
    return [items[i : i + size] for i in range(0, len(items), size)]


def wave_index_by_node(waves: list[Wave]) -> dict[str, int]:
    return {nid: w.index for w in waves for nid in w.node_ids}
