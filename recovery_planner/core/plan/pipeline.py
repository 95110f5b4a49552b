from __future__ import annotations

import logging
from typing import Iterable, Optional

from recovery_planner.core.graph.build_graph import build_graph
from recovery_planner.core.model import (
    BudgetEnvelope,
    CommandNode,
    ConstraintSet,
    PlanReport,
    PolicySignals,
    Scenario,
    Urgency,
)
from recovery_planner.core.policy.evaluate import evaluate
from recovery_planner.core.policy.policy_config import DEFAULT_CONSTRAINT_SETS
from recovery_planner.core.score.priority import score_priorities
from recovery_planner.core.topology.analyze import analyze
from recovery_planner.core.waves.partition import partition_waves

logger = logging.getLogger(__name__)


def plan_scenario(
    scenario: Scenario,
    *,
    constraints: Optional[ConstraintSet] = None,
    max_nodes_per_wave: Optional[int] = None,
    created_at: Optional[str] = None,
) -> PlanReport:
    """Build, analyze, score, partition and evaluate one scenario."""
    return plan_nodes(
        scenario.plan_id,
        scenario.tenant,
        scenario.nodes,
        scenario.budget,
        constraints=constraints,
        signals=scenario.signals,
        urgency=scenario.urgency,
        max_nodes_per_wave=max_nodes_per_wave,
        created_at=created_at,
    )


def plan_nodes(
    plan_id: str,
    tenant: str,
    nodes: Iterable[CommandNode],
    budget: BudgetEnvelope,
    *,
    constraints: Optional[ConstraintSet] = None,
    signals: Optional[PolicySignals] = None,
    urgency: Urgency = "routine",
    max_nodes_per_wave: Optional[int] = None,
    created_at: Optional[str] = None,
) -> PlanReport:
    constraints = constraints or DEFAULT_CONSTRAINT_SETS["default"]

    graph = build_graph(plan_id, tenant, nodes, created_at=created_at)
    topology = analyze(graph)
    priorities = score_priorities(graph, list(topology.order), list(topology.residual))
    waves = partition_waves(graph, max_nodes_per_wave, depths=dict(topology.depths))

    policy = evaluate(
        constraints,
        budget,
        topology.metrics,
        signals=signals,
        urgency=urgency,
        planned_duration_minutes=topology.critical_path_minutes if topology.order else None,
        resolved_nodes=len(topology.order),
        total_nodes=len(graph.nodes),
    )

    logger.debug(
        "plan %s: %d wave(s), %d issue(s), risk_score=%.2f passed=%s",
        plan_id,
        len(waves),
        len(topology.issues),
        policy.risk_score,
        policy.passed,
    )

    return PlanReport(
        graph=graph,
        topology=topology,
        waves=tuple(waves),
        priorities=priorities,
        policy=policy,
        budget=budget,
        urgency=urgency,
    )
