from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from recovery_planner.core.errors import ScenarioLoadError


_KEYS = ("schema_version", "plan_id", "tenant", "urgency", "budget", "signals", "nodes")


def load_scenario(path: str) -> dict[str, Any]:
    """Load YAML/JSON scenario file.

    Returns a dict restricted to the scenario keys, plus ``__file__``.
    Does not coerce types; validator owns shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise ScenarioLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise ScenarioLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise ScenarioLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except ScenarioLoadError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise ScenarioLoadError(code=code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise ScenarioLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    normalized: dict[str, Any] = {k: data.get(k) for k in _KEYS if k in data}
    normalized["__file__"] = str(p)
    return normalized
