from __future__ import annotations

import json
import logging
from typing import Any, Optional

import typer

from recovery_planner.core.errors import PlanError, PlanLintError, ScenarioLoadError, ScenarioValidationError
from recovery_planner.core.graph.build_graph import build_graph
from recovery_planner.core.io.load_scenario import load_scenario
from recovery_planner.core.lint.lint_graph import lint_graph
from recovery_planner.core.model import ConstraintSet, GraphIssue, Scenario
from recovery_planner.core.plan.pipeline import plan_scenario
from recovery_planner.core.plan.render import plan_report_to_dict, summarize_report, topology_to_dict
from recovery_planner.core.policy.policy_config import PolicyConfigError, load_and_merge
from recovery_planner.core.topology.analyze import analyze
from recovery_planner.core.validate.validate_scenario import validate_scenario

app = typer.Typer(add_completion=False, no_args_is_help=True)

EXIT_GATE_FAILED = 3


@app.callback()
def _callback(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level: DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """Recovery planner CLI."""
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise typer.BadParameter(f"unknown log level: {log_level}", param_hint="--log-level")
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    return


def _check_format(format: str, command: str) -> None:
    if format not in ("text", "json"):
        err = ScenarioValidationError(
            code=f"E_{command.upper()}_UNKNOWN_FORMAT",
            message=f"unknown format: {format} (choose one of: text, json)",
            file=None,
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _to_item(e: PlanError) -> dict:
    if isinstance(e, ScenarioLoadError):
        source = "load"
    elif isinstance(e, PlanLintError):
        source = "lint"
    else:
        source = "validate"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "error",
        "source": source,
    }


def _emit_json(payload: dict[str, Any], exit_code: int) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _load(path: str, command: str, format: str) -> Scenario:
    """Load + shape-validate, exiting 1 on load errors and 2 on validation errors."""
    try:
        raw = load_scenario(path)
    except ScenarioLoadError as e:
        if format == "json":
            _emit_json(
                {"tool": "recovery-planner", "command": command, "ok": False, "error_count": 1, "errors": [_to_item(e)]},
                1,
            )
        _print_errors([e])
        raise typer.Exit(code=1)

    scenario, errors = validate_scenario(raw)
    if errors or scenario is None:
        if format == "json":
            _emit_json(
                {
                    "tool": "recovery-planner",
                    "command": command,
                    "ok": False,
                    "error_count": len(errors),
                    "errors": [_to_item(e) for e in errors],
                },
                2,
            )
        _print_errors(list(errors))
        raise typer.Exit(code=2)
    return scenario


def _issue_errors(issues: tuple[GraphIssue, ...], file: Optional[str]) -> list[PlanError]:
    codes = {
        "duplicate-id": "E_DUPLICATE_ID",
        "missing-prerequisite": "E_MISSING_PREREQUISITE",
        "cycle": "E_CYCLE",
    }
    return [
        ScenarioValidationError(code=codes[i.kind], message=i.message, file=file, path=f"nodes[{i.node_id}]")
        for i in issues
    ]


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a scenario file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a scenario file and report structural graph issues."""
    _check_format(format, "validate")
    scenario = _load(path, "validate", format)

    graph = build_graph(scenario.plan_id, scenario.tenant, scenario.nodes)
    report = analyze(graph)
    errors = _issue_errors(report.issues, path)

    if format == "json":
        _emit_json(
            {
                "tool": "recovery-planner",
                "command": "validate",
                "ok": not errors,
                "error_count": len(errors),
                "errors": [_to_item(e) for e in errors],
                "summary": {
                    "plan_id": graph.plan_id,
                    "node_count": len(graph.nodes),
                    "roots": [nid for nid, d in report.depths.items() if d == 0],
                    "topology": topology_to_dict(report),
                },
            },
            2 if errors else 0,
        )

    if errors:
        _print_errors(errors)
        raise typer.Exit(code=2)

    typer.echo(f"OK: {len(graph.nodes)} nodes, {report.metrics.edge_count} edges, max depth {report.metrics.max_depth}")
    typer.echo("Order: " + ", ".join(report.order))


@app.command("lint")
def lint(
    path: str = typer.Argument(..., help="Path to a scenario file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Lint a scenario graph (rules beyond structural validation)."""
    _check_format(format, "lint")
    scenario = _load(path, "lint", format)

    graph = build_graph(scenario.plan_id, scenario.tenant, scenario.nodes)
    errors: list[PlanError] = list(lint_graph(graph, file=path))

    if format == "json":
        _emit_json(
            {
                "tool": "recovery-planner",
                "command": "lint",
                "ok": not errors,
                "error_count": len(errors),
                "errors": [_to_item(e) for e in errors],
            },
            2 if errors else 0,
        )

    if errors:
        _print_errors(errors)
        raise typer.Exit(code=2)
    typer.echo("OK: lint passed")


@app.command("plan")
def plan(
    path: str = typer.Argument(..., help="Path to a scenario file (.yaml/.yml/.json)"),
    policy: str = typer.Option("default", "--policy", help="Constraint set name"),
    policy_file: Optional[str] = typer.Option(
        None,
        "--policy-file",
        help="Optional YAML file to add/override constraint sets",
    ),
    max_wave: Optional[int] = typer.Option(
        None,
        "--max-wave",
        help="Max nodes per wave (default: budget max_parallelism)",
    ),
    unbounded: bool = typer.Option(False, "--unbounded", help="Do not slice waves by size"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Plan execution waves and evaluate the budget/policy gate."""
    _check_format(format, "plan")
    constraint_sets = _load_policies(policy_file)
    if policy not in constraint_sets:
        _print_errors(
            [
                ScenarioValidationError(
                    code="E_PLAN_UNKNOWN_POLICY",
                    message=f"unknown policy: {policy} (choose one of: {', '.join(sorted(constraint_sets))})",
                    file=None,
                    path="policy",
                )
            ]
        )
        raise typer.Exit(code=2)

    scenario = _load(path, "plan", format)
    if unbounded:
        wave_size = None
    elif max_wave is not None:
        wave_size = max_wave
    else:
        wave_size = scenario.budget.max_parallelism

    report = plan_scenario(scenario, constraints=constraint_sets[policy], max_nodes_per_wave=wave_size)
    exit_code = 0 if report.policy.passed else EXIT_GATE_FAILED

    if format == "json":
        payload = plan_report_to_dict(report)
        payload.update({"tool": "recovery-planner", "command": "plan", "policy_name": policy})
        _emit_json(payload, exit_code)

    typer.echo(summarize_report(report))
    if exit_code:
        raise typer.Exit(code=exit_code)


@app.command("policies")
def policies(
    policy_file: Optional[str] = typer.Option(
        None,
        "--policy-file",
        help="Optional YAML file to add/override constraint sets",
    ),
) -> None:
    """List available constraint sets."""
    constraint_sets = _load_policies(policy_file)
    typer.echo("Policies:")
    for name in sorted(constraint_sets):
        typer.echo(f"- {name}: {_describe(constraint_sets[name])}")


def _load_policies(policy_file: Optional[str]) -> dict[str, ConstraintSet]:
    try:
        return load_and_merge(policy_file)
    except FileNotFoundError:
        _print_errors(
            [
                ScenarioLoadError(
                    code="E_POLICY_FILE_NOT_FOUND",
                    message=f"policy file not found: {policy_file}",
                    file=None,
                    path="policy_file",
                )
            ]
        )
        raise typer.Exit(code=1)
    except PolicyConfigError as e:
        _print_errors(
            [
                ScenarioValidationError(
                    code="E_POLICY_FILE_INVALID",
                    message=str(e),
                    file=None,
                    path="policy_file",
                )
            ]
        )
        raise typer.Exit(code=2)


def _describe(c: ConstraintSet) -> str:
    return (
        f"duration {c.min_duration_minutes:g}-{c.max_duration_minutes:g}m, "
        f"parallelism {c.min_parallelism}-{c.max_parallelism}, "
        f"retries <= {c.max_retries}, policy >= {c.policy_pass_threshold:g}"
    )


def _print_errors(errors: list[PlanError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="recovery-planner")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
