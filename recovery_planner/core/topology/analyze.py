from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Optional

from recovery_planner.core.errors import TopologyInvariantError
from recovery_planner.core.model import CommandGraph, GraphIssue, HealthMetrics, TopologyReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Index:
    ids: list[str]
    # prerequisite -> dependents (known ids only), dependent -> prerequisites (may include unknown ids)
    successors: dict[str, list[str]]
    predecessors: dict[str, list[str]]


def _index(graph: CommandGraph) -> _Index:
    ids = [n.id for n in graph.nodes]
    successors: dict[str, list[str]] = {nid: [] for nid in ids}
    predecessors: dict[str, list[str]] = {nid: [] for nid in ids}
    for e in graph.edges:
        if e.source in successors:
            successors[e.source].append(e.target)
        predecessors[e.target].append(e.source)
    return _Index(ids=ids, successors=successors, predecessors=predecessors)


def find_roots(graph: CommandGraph) -> list[str]:
    idx = _index(graph)
    return _roots(idx)


def _roots(idx: _Index) -> list[str]:
    return [nid for nid in idx.ids if not idx.predecessors[nid]]


def topological_order(graph: CommandGraph) -> tuple[list[str], list[str], list[GraphIssue]]:
    """Kahn's algorithm over the derived edges.

    Returns (order, residual, issues). Residual nodes are never reached because
    they sit on or behind a cycle, or behind an unknown prerequisite; each gets
    exactly one issue. Ties resolve in declaration order.
    """
    return _kahn(_index(graph))


def _kahn(idx: _Index) -> tuple[list[str], list[str], list[GraphIssue]]:
    indegree = {nid: len(idx.predecessors[nid]) for nid in idx.ids}
    q: deque[str] = deque(_roots(idx))
    order: list[str] = []
    while q:
        cur = q.popleft()
        order.append(cur)
        for nxt in idx.successors[cur]:
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                q.append(nxt)

    resolved = set(order)
    residual = [nid for nid in idx.ids if nid not in resolved]
    return order, residual, _classify_residual(residual, idx)


def _classify_residual(residual: list[str], idx: _Index) -> list[GraphIssue]:
    pending = set(residual)
    cycles = _cycle_components(residual, idx.successors, pending)

    # One sweep from every cycle member marks the nodes stuck behind a cycle.
    behind: dict[str, str] = {}
    q: deque[tuple[str, str]] = deque((nid, nid) for nid in residual if nid in cycles)
    seen = set(cycles)
    while q:
        cur, via = q.popleft()
        for nxt in idx.successors[cur]:
            if nxt in pending and nxt not in seen:
                seen.add(nxt)
                behind[nxt] = via
                q.append((nxt, via))

    texts: dict[str, str] = {}
    issues: list[GraphIssue] = []
    for nid in residual:
        preds = idx.predecessors[nid]
        unknown = [p for p in preds if p not in idx.successors]

        if nid in cycles:
            members = cycles[nid]
            if members[0] not in texts:
                texts[members[0]] = _cycle_text(members)
            issues.append(
                GraphIssue(
                    kind="cycle",
                    node_id=nid,
                    message="node is part of a dependency cycle: " + texts[members[0]],
                    related=members,
                )
            )
        elif unknown:
            issues.append(
                GraphIssue(
                    kind="missing-prerequisite",
                    node_id=nid,
                    message=f"depends on unknown id: {unknown[0]}",
                    related=tuple(unknown),
                )
            )
        elif nid in behind:
            issues.append(
                GraphIssue(
                    kind="cycle",
                    node_id=nid,
                    message=f"blocked by dependency cycle through: {behind[nid]}",
                    related=tuple(p for p in preds if p in pending),
                )
            )
        else:
            blockers = [p for p in preds if p in pending]
            issues.append(
                GraphIssue(
                    kind="missing-prerequisite",
                    node_id=nid,
                    message=f"blocked by unresolved prerequisite: {blockers[0]}",
                    related=tuple(blockers),
                )
            )
    return issues


def _cycle_text(members: tuple[str, ...], limit: int = 8) -> str:
    if len(members) <= limit:
        return " -> ".join(members + (members[0],))
    return " -> ".join(members[:limit]) + f" -> ... ({len(members)} nodes)"


def _cycle_components(
    residual: list[str], successors: dict[str, list[str]], within: set[str]
) -> dict[str, tuple[str, ...]]:
    """Tarjan's strongly connected components over the residual subgraph.

    Maps every node that sits on a cycle to its component, in declaration
    order. Singletons count only with a self-loop.
    """
    position = {nid: i for i, nid in enumerate(residual)}
    index: dict[str, int] = {}
    low: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    out: dict[str, tuple[str, ...]] = {}

    for root in residual:
        if root in index:
            continue
        index[root] = low[root] = len(index)
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(successors[root]))]
        while work:
            v, it = work[-1]
            descended = False
            for w in it:
                if w not in within:
                    continue
                if w not in index:
                    index[w] = low[w] = len(index)
                    stack.append(w)
                    on_stack.add(w)
                    work.append((w, iter(successors[w])))
                    descended = True
                    break
                if w in on_stack:
                    low[v] = min(low[v], index[w])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[v])
            if low[v] != index[v]:
                continue

            members: list[str] = []
            while True:
                w = stack.pop()
                on_stack.discard(w)
                members.append(w)
                if w == v:
                    break
            if len(members) > 1 or v in successors[v]:
                component = tuple(sorted(members, key=position.__getitem__))
                for m in members:
                    out[m] = component

    return out


def node_depth(graph: CommandGraph, node_id: str, memo: Optional[dict[str, Optional[int]]] = None) -> Optional[int]:
    """Longest prerequisite chain ending at ``node_id``.

    depth(n) = 0 without inbound edges, else 1 + max(depth(p)). Nodes on or
    behind a cycle, or behind an unknown id, have no depth (None). ``memo`` is
    scoped to one analysis; a fresh one is used when omitted.
    """
    idx = _index(graph)
    if node_id not in idx.predecessors:
        return None
    return _depth(node_id, idx.predecessors, {} if memo is None else memo)


def compute_depths(graph: CommandGraph) -> dict[str, Optional[int]]:
    idx = _index(graph)
    return _all_depths(idx)


def _all_depths(idx: _Index) -> dict[str, Optional[int]]:
    memo: dict[str, Optional[int]] = {}
    for nid in idx.ids:
        _depth(nid, idx.predecessors, memo)
    return {nid: memo[nid] for nid in idx.ids}


def _depth(start: str, predecessors: dict[str, list[str]], memo: dict[str, Optional[int]]) -> Optional[int]:
    if start in memo:
        return memo[start]

    # Explicit stack instead of recursion; deep chains must not hit the interpreter limit.
    acc: dict[str, int] = {start: 0}
    blocked: set[str] = set()
    on_path: set[str] = {start}
    stack = [(start, iter(predecessors[start]))]

    while stack:
        nid, it = stack[-1]
        descended = False
        for p in it:
            if p not in predecessors or p in on_path:
                blocked.add(nid)
                continue
            if p in memo:
                d = memo[p]
                if d is None:
                    blocked.add(nid)
                else:
                    acc[nid] = max(acc[nid], d + 1)
                continue
            on_path.add(p)
            acc[p] = 0
            stack.append((p, iter(predecessors[p])))
            descended = True
            break
        if descended:
            continue

        stack.pop()
        on_path.discard(nid)
        value = None if nid in blocked else acc[nid]
        memo[nid] = value
        if stack:
            parent = stack[-1][0]
            if value is None:
                blocked.add(parent)
            else:
                acc[parent] = max(acc[parent], value + 1)

    return memo[start]


def find_back_edges(graph: CommandGraph) -> list[tuple[str, str]]:
    return _back_edges(_index(graph))


def _back_edges(idx: _Index) -> list[tuple[str, str]]:
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {nid: WHITE for nid in idx.ids}
    out: list[tuple[str, str]] = []

    for root in idx.ids:
        if state[root] != WHITE:
            continue
        state[root] = GRAY
        stack = [(root, iter(idx.successors[root]))]
        while stack:
            u, it = stack[-1]
            descended = False
            for v in it:
                if state[v] == GRAY:
                    out.append((u, v))
                elif state[v] == WHITE:
                    state[v] = GRAY
                    stack.append((v, iter(idx.successors[v])))
                    descended = True
                    break
            if not descended:
                state[u] = BLACK
                stack.pop()

    return out


def health_metrics(graph: CommandGraph) -> HealthMetrics:
    return analyze(graph).metrics


def _metrics(
    idx: _Index,
    edge_count: int,
    residual_issues: list[GraphIssue],
    back_edges: list[tuple[str, str]],
    depths: dict[str, int],
) -> HealthMetrics:
    n = len(idx.ids)
    if n == 0:
        return HealthMetrics()

    kahn_cycles = any(i.kind == "cycle" for i in residual_issues)
    dfs_cycles = bool(back_edges)
    if kahn_cycles != dfs_cycles:
        raise TopologyInvariantError(
            f"cycle probes disagree: residual={kahn_cycles} back_edges={dfs_cycles}"
        )

    fan_in_total = sum(len(p) for p in idx.predecessors.values())
    fan_out_total = sum(len(s) for s in idx.successors.values())
    return HealthMetrics(
        node_count=n,
        edge_count=edge_count,
        average_fan_in=fan_in_total / n,
        average_fan_out=fan_out_total / n,
        has_cycles=kahn_cycles,
        max_depth=max(depths.values(), default=0),
    )


def critical_path(graph: CommandGraph, order: Optional[list[str]] = None) -> tuple[list[str], float]:
    """Longest duration chain over resolved nodes: (node ids, total minutes)."""
    idx = _index(graph)
    if order is None:
        order, _, _ = _kahn(idx)
    return _critical_path(graph, idx, order)


def _critical_path(graph: CommandGraph, idx: _Index, order: list[str]) -> tuple[list[str], float]:
    by_id = graph.nodes_by_id
    total: dict[str, float] = {}
    prev: dict[str, Optional[str]] = {}
    for nid in order:
        best: Optional[str] = None
        for p in idx.predecessors[nid]:
            if p in total and (best is None or total[p] > total[best]):
                best = p
        total[nid] = by_id[nid].duration_minutes + (total[best] if best is not None else 0.0)
        prev[nid] = best

    if not total:
        return [], 0.0

    end = order[0]
    for nid in order:
        if total[nid] > total[end]:
            end = nid

    path: list[str] = []
    cur: Optional[str] = end
    while cur is not None:
        path.append(cur)
        cur = prev[cur]
    path.reverse()
    return path, total[end]


def analyze(graph: CommandGraph) -> TopologyReport:
    """Run the full topology analysis once over ``graph``."""
    idx = _index(graph)
    edges = graph.edges

    order, residual, residual_issues = _kahn(idx)
    all_depths = _all_depths(idx)
    depths = {nid: d for nid, d in all_depths.items() if d is not None}
    if set(depths) != set(order):
        raise TopologyInvariantError("depth resolution disagrees with topological order")

    back_edges = _back_edges(idx)
    metrics = _metrics(idx, len(edges), residual_issues, back_edges, depths)
    path, minutes = _critical_path(graph, idx, order)

    logger.debug(
        "plan %s: %d ordered, %d residual, max_depth=%d",
        graph.plan_id,
        len(order),
        len(residual),
        metrics.max_depth,
    )

    return TopologyReport(
        order=tuple(order),
        residual=tuple(residual),
        issues=tuple(graph.issues) + tuple(residual_issues),
        depths=depths,
        fan_in={nid: len(idx.predecessors[nid]) for nid in idx.ids},
        fan_out={nid: len(idx.successors[nid]) for nid in idx.ids},
        metrics=metrics,
        critical_path=tuple(path),
        critical_path_minutes=minutes,
    )
