from __future__ import annotations

from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

import yaml

from recovery_planner.core.model import ConstraintSet


GATE_NAMES: tuple[str, ...] = (
    "duration",
    "parallelism",
    "retries",
    "topology",
    "resolution",
    "policy",
    "schedule",
)


def _gates(value: float) -> dict[str, float]:
    return {name: value for name in GATE_NAMES}


DEFAULT_CONSTRAINT_SETS: dict[str, ConstraintSet] = {
    # Baseline used when no --policy is given; keep stable for golden tests.
    "default": ConstraintSet(
        name="default",
        min_duration_minutes=5,
        max_duration_minutes=240,
        min_parallelism=1,
        max_parallelism=20,
        max_retries=5,
        policy_pass_threshold=50,
        gate_thresholds=_gates(1.0),
    ),
    # Tighter envelope for regulated tenants.
    "strict": ConstraintSet(
        name="strict",
        min_duration_minutes=10,
        max_duration_minutes=120,
        min_parallelism=2,
        max_parallelism=8,
        max_retries=2,
        policy_pass_threshold=70,
        gate_thresholds=_gates(1.0),
    ),
    # Drills and rehearsals: allow partial gate pressure.
    "lenient": ConstraintSet(
        name="lenient",
        min_duration_minutes=1,
        max_duration_minutes=720,
        min_parallelism=1,
        max_parallelism=64,
        max_retries=10,
        policy_pass_threshold=30,
        gate_thresholds=_gates(0.5),
    ),
}

_NUMERIC_FIELDS: dict[str, type] = {
    "min_duration_minutes": float,
    "max_duration_minutes": float,
    "min_parallelism": int,
    "max_parallelism": int,
    "max_retries": int,
    "policy_pass_threshold": float,
}


class PolicyConfigError(ValueError):
    pass


def load_policy_file(path: str | Path) -> dict[str, ConstraintSet]:
    """Load constraint sets from a YAML file.

    Format:
      <name>:
        max_parallelism: 10
        gate_thresholds: {parallelism: 0.8}

    Omitted fields inherit from the built-in ``default`` set.
    """
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise PolicyConfigError(f"policy file is not valid YAML: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise PolicyConfigError("policy file must be a mapping of name -> constraint fields")

    base = DEFAULT_CONSTRAINT_SETS["default"]
    out: dict[str, ConstraintSet] = {}
    for k, v in raw.items():
        if not isinstance(k, str) or not k.strip():
            raise PolicyConfigError("policy names must be non-empty strings")
        if not isinstance(v, dict):
            raise PolicyConfigError(f"policy '{k}' must be a mapping")
        out[k.strip()] = _constraint_set(k.strip(), v, base)
    return out


def _constraint_set(name: str, raw: dict[str, Any], base: ConstraintSet) -> ConstraintSet:
    known = {f.name for f in fields(ConstraintSet)} - {"name"}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise PolicyConfigError(f"policy '{name}' has unknown fields: {', '.join(unknown)}")

    values = asdict(base)
    values["name"] = name
    for key, kind in _NUMERIC_FIELDS.items():
        if key not in raw:
            continue
        v = raw[key]
        if isinstance(v, bool) or not isinstance(v, (int, float)) or v < 0:
            raise PolicyConfigError(f"policy '{name}' field {key} must be a non-negative number")
        if kind is int and not float(v).is_integer():
            raise PolicyConfigError(f"policy '{name}' field {key} must be an integer")
        values[key] = kind(v)

    thresholds = raw.get("gate_thresholds")
    if thresholds is not None:
        if not isinstance(thresholds, dict):
            raise PolicyConfigError(f"policy '{name}' gate_thresholds must be a mapping")
        merged = dict(base.gate_thresholds)
        for gate, t in thresholds.items():
            if gate not in GATE_NAMES:
                raise PolicyConfigError(f"policy '{name}' references unknown gate: {gate}")
            if isinstance(t, bool) or not isinstance(t, (int, float)) or not 0 <= t <= 1:
                raise PolicyConfigError(f"policy '{name}' gate '{gate}' threshold must be within [0, 1]")
            merged[gate] = float(t)
        values["gate_thresholds"] = merged

    if values["min_duration_minutes"] > values["max_duration_minutes"]:
        raise PolicyConfigError(f"policy '{name}' duration band is inverted")
    if values["min_parallelism"] > values["max_parallelism"]:
        raise PolicyConfigError(f"policy '{name}' parallelism band is inverted")

    return ConstraintSet(**values)


def merged_constraint_sets(overrides: dict[str, ConstraintSet] | None = None) -> dict[str, ConstraintSet]:
    """Return DEFAULT_CONSTRAINT_SETS merged with optional overrides.

    Overrides replace sets of the same name, and may add new ones.
    """
    merged = dict(DEFAULT_CONSTRAINT_SETS)
    if overrides:
        merged.update(overrides)
    return merged


def load_and_merge(policy_file: str | None) -> dict[str, ConstraintSet]:
    if not policy_file:
        return merged_constraint_sets()
    return merged_constraint_sets(load_policy_file(policy_file))
