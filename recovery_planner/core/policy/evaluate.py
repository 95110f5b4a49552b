from __future__ import annotations

import logging
from typing import Optional

from recovery_planner.core.model import (
    BudgetEnvelope,
    ConstraintSet,
    GateResult,
    HealthMetrics,
    PolicyResult,
    PolicySignals,
    Urgency,
    Violation,
)

logger = logging.getLogger(__name__)


URGENCY_BONUS: dict[str, float] = {"critical": 20, "urgent": 12, "routine": 5}
PASS_RISK_SCORE = 40


def evaluate(
    constraints: ConstraintSet,
    budget: BudgetEnvelope,
    metrics: HealthMetrics,
    *,
    signals: Optional[PolicySignals] = None,
    urgency: Urgency = "routine",
    planned_duration_minutes: Optional[float] = None,
    resolved_nodes: Optional[int] = None,
    total_nodes: Optional[int] = None,
) -> PolicyResult:
    """Check a budget envelope and graph health against a constraint set.

    Every rule runs; violations are collected, never raised. The verdict
    passes when the composite risk score is at least 40 and every gate meets
    its configured threshold.
    """

    violations: list[Violation] = []
    rates: dict[str, float] = {}

    # Duration band.
    duration = budget.max_duration_minutes
    if duration > constraints.max_duration_minutes:
        violations.append(
            Violation(
                constraint="duration-over",
                message=f"max duration {duration:g}m exceeds limit {constraints.max_duration_minutes:g}m",
                severity="high",
            )
        )
        rates["duration"] = _ratio(constraints.max_duration_minutes, duration)
    elif duration < constraints.min_duration_minutes:
        violations.append(
            Violation(
                constraint="duration-under",
                message=f"max duration {duration:g}m is below minimum {constraints.min_duration_minutes:g}m",
                severity="medium",
            )
        )
        rates["duration"] = _ratio(duration, constraints.min_duration_minutes)
    else:
        rates["duration"] = 1.0

    # Parallelism band.
    parallelism = budget.max_parallelism
    if parallelism > constraints.max_parallelism:
        violations.append(
            Violation(
                constraint="parallelism-over",
                message=f"parallelism {parallelism} exceeds limit {constraints.max_parallelism}",
                severity="high",
            )
        )
        rates["parallelism"] = _ratio(constraints.max_parallelism, parallelism)
    elif parallelism < constraints.min_parallelism:
        violations.append(
            Violation(
                constraint="parallelism-under",
                message=f"parallelism {parallelism} is below minimum {constraints.min_parallelism}",
                severity="low",
            )
        )
        rates["parallelism"] = _ratio(parallelism, constraints.min_parallelism)
    else:
        rates["parallelism"] = 1.0

    # Retry pressure.
    if budget.max_retries > constraints.max_retries:
        violations.append(
            Violation(
                constraint="retry-pressure",
                message=f"retry limit {budget.max_retries} exceeds ceiling {constraints.max_retries}",
                severity="medium",
            )
        )
        rates["retries"] = _ratio(constraints.max_retries, budget.max_retries)
    else:
        rates["retries"] = 1.0

    # Graph health.
    if metrics.has_cycles:
        violations.append(
            Violation(
                constraint="graph-cycles",
                message="dependency graph contains cycles; affected nodes cannot be scheduled",
                severity="high",
            )
        )
        rates["topology"] = 0.0
    else:
        rates["topology"] = 1.0

    # Nodes that never reach the order cannot be executed.
    if resolved_nodes is not None and total_nodes:
        if resolved_nodes < total_nodes:
            violations.append(
                Violation(
                    constraint="unresolved-nodes",
                    message=f"{total_nodes - resolved_nodes} of {total_nodes} node(s) cannot be scheduled",
                    severity="high",
                )
            )
        rates["resolution"] = _ratio(resolved_nodes, total_nodes)

    # External policy gate.
    if signals is not None and signals.risk_score is not None:
        risk = signals.risk_score
        if risk < constraints.policy_pass_threshold:
            violations.append(
                Violation(
                    constraint="policy-gate",
                    message=f"policy risk score {risk:g} is below pass threshold {constraints.policy_pass_threshold:g}",
                    severity="high" if risk > 80 else "medium",
                )
            )
            rates["policy"] = _ratio(risk, constraints.policy_pass_threshold)
        else:
            rates["policy"] = 1.0

    # Planned schedule against the budget.
    if planned_duration_minutes is not None:
        if planned_duration_minutes > duration:
            violations.append(
                Violation(
                    constraint="duration-budget-exceeded",
                    message=f"critical path {planned_duration_minutes:g}m exceeds budget {duration:g}m",
                    severity="high",
                )
            )
            rates["schedule"] = _ratio(duration, planned_duration_minutes)
        else:
            rates["schedule"] = 1.0

    gates = tuple(
        GateResult(name=name, pass_rate=rate, threshold=constraints.gate_thresholds.get(name, 1.0))
        for name, rate in rates.items()
    )

    risk_score = composite_risk_score([g.pass_rate for g in gates], urgency, metrics)
    passed = risk_score >= PASS_RISK_SCORE and all(g.ok for g in gates)

    if not passed:
        logger.info(
            "policy %s failed: risk_score=%.2f failed_gates=%s violations=%s",
            constraints.name,
            risk_score,
            [g.name for g in gates if not g.ok],
            [v.constraint for v in violations],
        )

    return PolicyResult(
        violations=tuple(violations),
        gates=gates,
        risk_score=risk_score,
        passed=passed,
    )


def composite_risk_score(pass_rates: list[float], urgency: Urgency, metrics: HealthMetrics) -> float:
    base = (sum(pass_rates) / len(pass_rates)) * 100 if pass_rates else 0.0
    coupling = (metrics.average_fan_in + metrics.average_fan_out) / 2
    score = base + URGENCY_BONUS.get(urgency, URGENCY_BONUS["routine"]) + coupling
    return round(min(100.0, max(0.0, score)), 2)


def _ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return min(1.0, max(0.0, numerator / denominator))
