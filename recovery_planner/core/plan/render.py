from __future__ import annotations

from dataclasses import asdict
from typing import Any

from recovery_planner.core.model import PlanReport, TopologyReport
from recovery_planner.core.score.priority import rank_priorities


def topology_to_dict(report: TopologyReport) -> dict[str, Any]:
    return {
        "order": list(report.order),
        "residual": list(report.residual),
        "issues": [
            {"kind": i.kind, "node_id": i.node_id, "message": i.message, "related": list(i.related)}
            for i in report.issues
        ],
        "depths": dict(report.depths),
        "fan_in": dict(report.fan_in),
        "fan_out": dict(report.fan_out),
        "metrics": asdict(report.metrics),
        "critical_path": list(report.critical_path),
        "critical_path_minutes": report.critical_path_minutes,
    }


def plan_report_to_dict(report: PlanReport) -> dict[str, Any]:
    """Plain JSON-ready view of a plan report."""
    policy = report.policy
    return {
        "plan_id": report.graph.plan_id,
        "tenant": report.graph.tenant,
        "created_at": report.graph.created_at,
        "urgency": report.urgency,
        "budget": asdict(report.budget),
        "topology": topology_to_dict(report.topology),
        "waves": [
            {"id": w.wave_id, "title": w.title, "index": w.index, "depth": w.depth, "node_ids": list(w.node_ids)}
            for w in report.waves
        ],
        "priorities": [asdict(p) for p in rank_priorities(report.priorities)],
        "policy": {
            "passed": policy.passed,
            "risk_score": policy.risk_score,
            "violations": [asdict(v) for v in policy.violations],
            "gates": [
                {"name": g.name, "pass_rate": g.pass_rate, "threshold": g.threshold, "ok": g.ok}
                for g in policy.gates
            ],
            "failed_gates": policy.failed_gates,
        },
    }


def summarize_report(report: PlanReport) -> str:
    topo = report.topology
    m = topo.metrics
    lines = [
        f"Plan {report.graph.plan_id} (tenant={report.graph.tenant}, urgency={report.urgency})",
        f"Nodes: {m.node_count}, edges: {m.edge_count}, max depth: {m.max_depth}, cycles: {'yes' if m.has_cycles else 'no'}",
        "Order: " + (", ".join(topo.order) if topo.order else "<none>"),
    ]
    if topo.residual:
        lines.append("Unresolved: " + ", ".join(topo.residual))
    for w in report.waves:
        lines.append(f"{w.title}: " + ", ".join(w.node_ids))
    if topo.critical_path:
        lines.append(
            f"Critical path ({topo.critical_path_minutes:g}m): " + " -> ".join(topo.critical_path)
        )
    for issue in topo.issues:
        lines.append(f"ISSUE {issue}")

    policy = report.policy
    for v in policy.violations:
        lines.append(f"VIOLATION [{v.severity}] {v.constraint}: {v.message}")
    verdict = "PASS" if policy.passed else "FAIL"
    suffix = f" (failed gates: {', '.join(policy.failed_gates)})" if policy.failed_gates else ""
    lines.append(f"{verdict}: risk score {policy.risk_score:g}{suffix}")
    if report.budget.requires_approval:
        lines.append("NOTE: manual approval required before execution")
    return "\n".join(lines)
