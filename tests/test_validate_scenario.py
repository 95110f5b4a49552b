from recovery_planner.core.io.load_scenario import load_scenario
from recovery_planner.core.model import Dependency
from recovery_planner.core.validate.validate_scenario import validate_scenario


def _raw(**overrides):
    raw = {
        "plan_id": "P",
        "tenant": "acme",
        "budget": {"max_parallelism": 2, "max_retries": 1, "max_duration_minutes": 30},
        "nodes": [{"id": "a"}],
    }
    raw.update(overrides)
    return raw


def test_validate_happy_path():
    scenario, errors = validate_scenario(load_scenario("examples/basic-scenario.yaml"))
    assert errors == []
    assert scenario is not None
    assert scenario.urgency == "urgent"
    assert scenario.budget.requires_approval is True
    assert scenario.signals.risk_score == 72
    assert [n.id for n in scenario.nodes] == ["snapshot", "drain", "failover-db", "restart-app", "verify"]
    restart = scenario.nodes[3]
    assert restart.dependencies == (
        Dependency("drain"),
        Dependency("failover-db", criticality=3, coupling=0.5),
    )


def test_defaults_are_applied():
    scenario, errors = validate_scenario(_raw())
    assert errors == []
    assert scenario is not None
    node = scenario.nodes[0]
    assert node.label == "a"
    assert node.kind == "command"
    assert node.duration_minutes == 0
    assert node.dependencies == ()
    assert scenario.urgency == "routine"
    assert scenario.signals.risk_score is None


def test_validate_bad_type_shape():
    scenario, errors = validate_scenario(load_scenario("examples/invalid-bad-type.yaml"))
    assert scenario is None
    assert [(e.code, e.path) for e in errors] == [
        ("E_INVALID_TYPE", "budget.max_parallelism"),
        ("E_INVALID_TYPE", "nodes[0].depends_on"),
    ]


def test_validate_missing_required_fields():
    scenario, errors = validate_scenario({"nodes": "nope"})
    assert scenario is None
    assert {(e.code, e.path) for e in errors} == {
        ("E_REQUIRED_FIELD", "budget"),
        ("E_REQUIRED_FIELD", "nodes"),
        ("E_REQUIRED_FIELD", "plan_id"),
        ("E_REQUIRED_FIELD", "tenant"),
    }


def test_validate_ranges_and_enums():
    _, errors = validate_scenario(
        _raw(
            urgency="panic",
            signals={"risk_score": 140},
            nodes=[{"id": "b", "depends_on": [{"id": "a", "criticality": 7}]}],
        )
    )
    assert {(e.code, e.path) for e in errors} == {
        ("E_INVALID_ENUM", "urgency"),
        ("E_OUT_OF_RANGE", "signals.risk_score"),
        ("E_OUT_OF_RANGE", "nodes[0].depends_on[0].criticality"),
    }


def test_booleans_are_not_integers():
    _, errors = validate_scenario(_raw(budget={"max_parallelism": True, "max_retries": 1, "max_duration_minutes": 30}))
    assert [(e.code, e.path) for e in errors] == [("E_INVALID_TYPE", "budget.max_parallelism")]


def test_duplicates_and_unknown_deps_are_left_to_the_graph():
    scenario, errors = validate_scenario(load_scenario("examples/duplicate-id-scenario.yaml"))
    assert errors == []
    assert scenario is not None
    assert len(scenario.nodes) == 2

    scenario, errors = validate_scenario(load_scenario("examples/missing-prereq-scenario.yaml"))
    assert errors == []


def test_non_mapping_budget_yields_no_scenario():
    scenario, errors = validate_scenario(_raw(budget=[2, 1, 30]))
    assert scenario is None
    assert [(e.code, e.path) for e in errors] == [("E_REQUIRED_FIELD", "budget")]
