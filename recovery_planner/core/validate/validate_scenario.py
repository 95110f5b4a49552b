from __future__ import annotations

from typing import Any, Iterable, Optional, cast

from recovery_planner.core.errors import ScenarioValidationError
from recovery_planner.core.model import (
    BudgetEnvelope,
    CommandNode,
    Dependency,
    PolicySignals,
    Scenario,
    Urgency,
)


ALLOWED_URGENCY: set[str] = {"routine", "urgent", "critical"}


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def _non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and bool(v.strip())


def validate_scenario(raw: dict[str, Any]) -> tuple[Optional[Scenario], list[ScenarioValidationError]]:
    """Validate scenario shape.

    Returns (scenario, errors). Scenario is None when errors exist. Duplicate
    node ids and unknown dependency ids are *not* checked here; the graph
    builder and topology analyzer report those as issues.
    """

    file = cast(Optional[str], raw.get("__file__"))
    errors: list[ScenarioValidationError] = []

    def err(code: str, message: str, path: str) -> None:
        errors.append(ScenarioValidationError(code=code, message=message, file=file, path=path))

    plan_id = raw.get("plan_id")
    if not _non_empty_str(plan_id):
        err("E_REQUIRED_FIELD", "plan_id is required and must be a non-empty string", "plan_id")

    tenant = raw.get("tenant")
    if not _non_empty_str(tenant):
        err("E_REQUIRED_FIELD", "tenant is required and must be a non-empty string", "tenant")

    schema_version = raw.get("schema_version")
    if schema_version is not None and not isinstance(schema_version, str):
        err("E_INVALID_TYPE", "schema_version must be a string", "schema_version")

    urgency = raw.get("urgency", "routine")
    if urgency is None:
        urgency = "routine"
    if not isinstance(urgency, str) or urgency not in ALLOWED_URGENCY:
        err("E_INVALID_ENUM", f"urgency must be one of {sorted(ALLOWED_URGENCY)}", "urgency")

    budget = _budget(raw.get("budget"), err)
    signals = _signals(raw.get("signals"), err)

    nodes_raw = raw.get("nodes")
    nodes: list[CommandNode] = []
    if not isinstance(nodes_raw, list):
        err("E_REQUIRED_FIELD", "nodes is required and must be an array", "nodes")
    else:
        for i, item in enumerate(nodes_raw):
            node = _node(item, f"nodes[{i}]", err)
            if node is not None:
                nodes.append(node)

    if errors or budget is None:
        return None, _sorted(errors)

    return (
        Scenario(
            plan_id=cast(str, plan_id),
            tenant=cast(str, tenant),
            nodes=tuple(nodes),
            budget=budget,
            urgency=cast(Urgency, urgency),
            signals=signals,
            schema_version=cast(Optional[str], schema_version),
        ),
        [],
    )


def _budget(raw: Any, err) -> Optional[BudgetEnvelope]:
    if not isinstance(raw, dict):
        err("E_REQUIRED_FIELD", "budget is required and must be an object", "budget")
        return None

    ok = True
    for key in ("max_parallelism", "max_retries"):
        v = raw.get(key)
        if not _is_int(v):
            err("E_INVALID_TYPE", f"{key} is required and must be an integer", f"budget.{key}")
            ok = False
        elif v < 0:
            err("E_OUT_OF_RANGE", f"{key} must be >= 0", f"budget.{key}")
            ok = False

    duration = raw.get("max_duration_minutes")
    if not _is_number(duration):
        err("E_INVALID_TYPE", "max_duration_minutes is required and must be a number", "budget.max_duration_minutes")
        ok = False
    elif duration < 0:
        err("E_OUT_OF_RANGE", "max_duration_minutes must be >= 0", "budget.max_duration_minutes")
        ok = False

    approval = raw.get("requires_approval", False)
    if not isinstance(approval, bool):
        err("E_INVALID_TYPE", "requires_approval must be a boolean", "budget.requires_approval")
        ok = False

    if not ok:
        return None
    return BudgetEnvelope(
        max_parallelism=raw["max_parallelism"],
        max_retries=raw["max_retries"],
        max_duration_minutes=float(duration),
        requires_approval=approval,
    )


def _signals(raw: Any, err) -> PolicySignals:
    if raw is None:
        return PolicySignals()
    if not isinstance(raw, dict):
        err("E_INVALID_TYPE", "signals must be an object", "signals")
        return PolicySignals()

    risk = raw.get("risk_score")
    if risk is None:
        return PolicySignals()
    if not _is_number(risk):
        err("E_INVALID_TYPE", "risk_score must be a number", "signals.risk_score")
        return PolicySignals()
    if not 0 <= risk <= 100:
        err("E_OUT_OF_RANGE", "risk_score must be within [0, 100]", "signals.risk_score")
        return PolicySignals()
    return PolicySignals(risk_score=float(risk))


def _node(raw: Any, path: str, err) -> Optional[CommandNode]:
    if not isinstance(raw, dict):
        err("E_INVALID_TYPE", "node must be an object", path)
        return None

    nid = raw.get("id")
    if not _non_empty_str(nid):
        err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{path}.id")
        return None

    label = raw.get("label", nid)
    if not isinstance(label, str):
        err("E_INVALID_TYPE", "label must be a string", f"{path}.label")
        return None

    kind = raw.get("kind", "command")
    if not _non_empty_str(kind):
        err("E_INVALID_TYPE", "kind must be a non-empty string", f"{path}.kind")
        return None

    duration = raw.get("duration_minutes", 0)
    if not _is_number(duration) or duration < 0:
        err("E_INVALID_TYPE", "duration_minutes must be a non-negative number", f"{path}.duration_minutes")
        return None

    owner = raw.get("owner")
    if owner is not None and not isinstance(owner, str):
        err("E_INVALID_TYPE", "owner must be a string", f"{path}.owner")
        return None

    tags = raw.get("tags", [])
    if tags is None:
        tags = []
    if not _is_list_of_str(tags):
        err("E_INVALID_TYPE", "tags must be an array of strings", f"{path}.tags")
        return None

    deps_raw = raw.get("depends_on", [])
    if deps_raw is None:
        deps_raw = []
    if not isinstance(deps_raw, list):
        err("E_INVALID_TYPE", "depends_on must be an array", f"{path}.depends_on")
        return None

    deps: list[Dependency] = []
    for di, d in enumerate(deps_raw):
        dep = _dependency(d, f"{path}.depends_on[{di}]", err)
        if dep is None:
            return None
        deps.append(dep)

    return CommandNode(
        id=nid,
        label=label,
        kind=kind,
        duration_minutes=float(duration),
        owner=owner,
        dependencies=tuple(deps),
        tags=tuple(tags),
    )


def _dependency(raw: Any, path: str, err) -> Optional[Dependency]:
    # Shorthand: a bare id string.
    if isinstance(raw, str):
        if not raw.strip():
            err("E_REQUIRED_FIELD", "dependency id must be a non-empty string", path)
            return None
        return Dependency(node_id=raw)

    if not isinstance(raw, dict):
        err("E_INVALID_TYPE", "dependency must be a string or an object", path)
        return None

    dep_id = raw.get("id")
    if not _non_empty_str(dep_id):
        err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{path}.id")
        return None

    criticality = raw.get("criticality", 1)
    if not _is_int(criticality) or not 1 <= criticality <= 5:
        err("E_OUT_OF_RANGE", "criticality must be an integer within [1, 5]", f"{path}.criticality")
        return None

    coupling = raw.get("coupling", 0.0)
    if not _is_number(coupling) or not 0 <= coupling <= 1:
        err("E_OUT_OF_RANGE", "coupling must be a number within [0, 1]", f"{path}.coupling")
        return None

    optional = raw.get("optional", False)
    if not isinstance(optional, bool):
        err("E_INVALID_TYPE", "optional must be a boolean", f"{path}.optional")
        return None

    return Dependency(node_id=dep_id, criticality=criticality, coupling=float(coupling), optional=optional)


def _sorted(errors: Iterable[ScenarioValidationError]) -> list[ScenarioValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
