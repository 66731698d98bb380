from datetime import datetime, timezone

import pytest

from beadgraph.core.cook.cook_formula import (
    cook_formula,
    cooked_to_dict,
    parse_var_assignments,
    substitute,
)
from beadgraph.core.errors import MalformedInputError
from beadgraph.core.io.load_formula import load_formula
from beadgraph.core.model import Formula, Step, Var
from beadgraph.core.validate.validate_formula import parse_formula


def _convoy():
    return parse_formula(load_formula("examples/convoy.toml"))


def test_defaults_are_applied():
    cooked = cook_formula(_convoy())
    assert [leg.title for leg in cooked.formula.legs] == [
        "Prepare v1.0.0",
        "Stage v1.0.0",
        "Publish v1.0.0",
    ]
    assert cooked.cooked_vars == {"release": "v1.0.0"}
    assert cooked.original_name == "release-convoy"


def test_supplied_values_override_defaults():
    cooked = cook_formula(_convoy(), {"release": "v2.1.0"})
    assert cooked.formula.legs[0].title == "Prepare v2.1.0"


def test_pattern_is_enforced():
    with pytest.raises(MalformedInputError) as exc:
        cook_formula(_convoy(), {"release": "latest"})
    assert exc.value.code == "E_INVALID_VAR"


def test_broken_pattern_is_malformed_input():
    formula = Formula(
        name="broken",
        type="workflow",
        steps=[Step(id="a", title="A {{x}}")],
        vars={"x": Var(name="x", default="a", pattern="[")},
    )
    with pytest.raises(MalformedInputError) as exc:
        cook_formula(formula)
    assert exc.value.code == "E_INVALID_TYPE"
    assert exc.value.path == "vars.x.pattern"


def test_enum_is_enforced():
    formula = Formula(
        name="env",
        type="workflow",
        steps=[Step(id="deploy", title="Deploy to {{env}}")],
        vars={"env": Var(name="env", enum=["staging", "prod"])},
    )
    assert cook_formula(formula, {"env": "prod"}).formula.steps[0].title == "Deploy to prod"
    with pytest.raises(MalformedInputError) as exc:
        cook_formula(formula, {"env": "qa"})
    assert exc.value.code == "E_INVALID_VAR"


def test_required_var_missing():
    formula = parse_formula(load_formula("examples/feature-workflow.json"))
    with pytest.raises(MalformedInputError) as exc:
        cook_formula(formula)
    assert exc.value.code == "E_MISSING_VAR"
    assert exc.value.path == "vars.feature"


def test_unknown_placeholders_stay_verbatim():
    assert substitute("{{a}} and {{b}}", {"a": "x"}) == "x and {{b}}"


def test_cooked_at_and_dict():
    now = datetime(2026, 1, 24, tzinfo=timezone.utc)
    cooked = cook_formula(_convoy(), now=now)
    assert cooked.cooked_at == now
    payload = cooked_to_dict(cooked)
    assert payload["cooked_at"] == "2026-01-24T00:00:00+00:00"
    assert payload["legs"][1]["focus"] == "staging"
    assert "steps" not in payload


def test_cooking_does_not_touch_structure():
    formula = parse_formula(load_formula("examples/feature-workflow.json"))
    cooked = cook_formula(formula, {"feature": "login"})
    assert [s.needs for s in cooked.formula.steps] == [s.needs for s in formula.steps]
    assert formula.steps[0].title == "Design {{feature}}"


def test_parse_var_assignments():
    assert parse_var_assignments(["a=1", "b=x=y"]) == {"a": "1", "b": "x=y"}
    with pytest.raises(MalformedInputError):
        parse_var_assignments(["novalue"])
