from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional


Urgency = Literal["routine", "urgent", "critical"]
IssueKind = Literal["duplicate-id", "missing-prerequisite", "cycle"]
Severity = Literal["low", "medium", "high"]


@dataclass(frozen=True)
class Dependency:
    node_id: str
    criticality: int = 1
    coupling: float = 0.0
    optional: bool = False


@dataclass(frozen=True)
class CommandNode:
    id: str
    label: str
    kind: str = "command"
    duration_minutes: float = 0.0
    owner: Optional[str] = None
    dependencies: tuple[Dependency, ...] = ()
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    weight: float
    criticality: int
    optional: bool = False


@dataclass(frozen=True)
class GraphIssue:
    kind: IssueKind
    node_id: str
    message: str
    related: tuple[str, ...] = ()

    def __str__(self) -> str:
        return f"{self.node_id}: {self.kind}: {self.message}"


def derive_edges(nodes: tuple[CommandNode, ...]) -> tuple[Edge, ...]:
    """Project node dependency lists onto (prerequisite -> dependent) edges."""
    return tuple(
        Edge(
            source=dep.node_id,
            target=n.id,
            weight=dep.coupling,
            criticality=dep.criticality,
            optional=dep.optional,
        )
        for n in nodes
        for dep in n.dependencies
    )


@dataclass(frozen=True)
class CommandGraph:
    plan_id: str
    tenant: str
    created_at: str
    nodes: tuple[CommandNode, ...]
    issues: tuple[GraphIssue, ...] = ()

    @property
    def edges(self) -> tuple[Edge, ...]:
        return derive_edges(self.nodes)

    @property
    def nodes_by_id(self) -> dict[str, CommandNode]:
        return {n.id: n for n in self.nodes}


@dataclass(frozen=True)
class HealthMetrics:
    node_count: int = 0
    edge_count: int = 0
    average_fan_in: float = 0.0
    average_fan_out: float = 0.0
    has_cycles: bool = False
    max_depth: int = 0


@dataclass(frozen=True)
class TopologyReport:
    order: tuple[str, ...]
    residual: tuple[str, ...]
    issues: tuple[GraphIssue, ...]
    depths: dict[str, int]
    fan_in: dict[str, int]
    fan_out: dict[str, int]
    metrics: HealthMetrics
    critical_path: tuple[str, ...] = ()
    critical_path_minutes: float = 0.0


@dataclass(frozen=True)
class Wave:
    plan_id: str
    index: int
    depth: int
    node_ids: tuple[str, ...]

    @property
    def wave_id(self) -> str:
        return f"{self.plan_id}:wave:{self.index}"

    @property
    def title(self) -> str:
        return f"Wave {self.index + 1}"


@dataclass(frozen=True)
class NodePriority:
    node_id: str
    position: int
    score: int
    raw: float


@dataclass(frozen=True)
class BudgetEnvelope:
    max_parallelism: int
    max_retries: int
    max_duration_minutes: float
    requires_approval: bool = False


@dataclass(frozen=True)
class PolicySignals:
    # External risk signal (0-100); None skips the policy gate.
    risk_score: Optional[float] = None


@dataclass(frozen=True)
class ConstraintSet:
    name: str
    min_duration_minutes: float
    max_duration_minutes: float
    min_parallelism: int
    max_parallelism: int
    max_retries: int
    policy_pass_threshold: float
    gate_thresholds: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class Violation:
    constraint: str
    message: str
    severity: Severity


@dataclass(frozen=True)
class GateResult:
    name: str
    pass_rate: float
    threshold: float

    @property
    def ok(self) -> bool:
        return self.pass_rate >= self.threshold


@dataclass(frozen=True)
class PolicyResult:
    violations: tuple[Violation, ...]
    gates: tuple[GateResult, ...]
    risk_score: float
    passed: bool

    @property
    def failed_gates(self) -> list[str]:
        return [g.name for g in self.gates if not g.ok]


@dataclass(frozen=True)
class Scenario:
    plan_id: str
    tenant: str
    nodes: tuple[CommandNode, ...]
    budget: BudgetEnvelope
    urgency: Urgency = "routine"
    signals: PolicySignals = PolicySignals()
    schema_version: Optional[str] = None


@dataclass(frozen=True)
class PlanReport:
    graph: CommandGraph
    topology: TopologyReport
    waves: tuple[Wave, ...]
    priorities: dict[str, NodePriority]
    policy: PolicyResult
    budget: BudgetEnvelope
    urgency: Urgency = "routine"
