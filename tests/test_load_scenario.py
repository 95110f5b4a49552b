from recovery_planner.core.errors import ScenarioLoadError
from recovery_planner.core.io.load_scenario import load_scenario


def test_load_yaml_success():
    raw = load_scenario("examples/basic-scenario.yaml")
    assert raw["schema_version"] == "0.1.0"
    assert raw["plan_id"] == "PLAN-DB-FAILOVER"
    assert isinstance(raw["nodes"], list)
    assert raw["__file__"] == "examples/basic-scenario.yaml"


def test_load_json_success():
    raw = load_scenario("examples/basic-scenario.json")
    assert raw["plan_id"] == "PLAN-JSON"
    assert "signals" not in raw


def test_load_missing_file():
    try:
        load_scenario("examples/does-not-exist.yaml")
        assert False, "expected ScenarioLoadError"
    except ScenarioLoadError as e:
        assert e.code == "E_FILE_NOT_FOUND"


def test_load_unsupported_format(tmp_path):
    p = tmp_path / "scenario.txt"
    p.write_text("hello", encoding="utf-8")
    try:
        load_scenario(str(p))
        assert False, "expected ScenarioLoadError"
    except ScenarioLoadError as e:
        assert e.code == "E_UNSUPPORTED_FORMAT"


def test_load_parse_errors(tmp_path):
    y = tmp_path / "bad.yaml"
    y.write_text("nodes: [\n", encoding="utf-8")
    j = tmp_path / "bad.json"
    j.write_text("{nodes:", encoding="utf-8")
    for path, code in ((y, "E_YAML_PARSE"), (j, "E_JSON_PARSE")):
        try:
            load_scenario(str(path))
            assert False, "expected ScenarioLoadError"
        except ScenarioLoadError as e:
            assert e.code == code


def test_load_rejects_non_mapping(tmp_path):
    p = tmp_path / "list.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    try:
        load_scenario(str(p))
        assert False, "expected ScenarioLoadError"
    except ScenarioLoadError as e:
        assert e.code == "E_INVALID_TOP_LEVEL"
        assert str(e).endswith("E_INVALID_TOP_LEVEL: top-level document must be a mapping/object")
