from beadgraph.core.io.load_formula import load_formula
from beadgraph.core.lint.lint_formula import lint_formula


def test_lint_clean_formulas():
    assert lint_formula(load_formula("examples/review-workflow.yaml")) == []
    assert lint_formula(load_formula("examples/feature-workflow.json")) == []
    assert lint_formula(load_formula("examples/convoy.toml")) == []


def test_lint_cycle():
    errors = lint_formula(load_formula("examples/mutual-cycle.yaml"))
    cycles = [e for e in errors if e.code == "L_CYCLE_DETECTED"]
    assert len(cycles) == 1
    assert "a -> b -> a" in cycles[0].message


def test_lint_self_need():
    raw = {"name": "x", "type": "workflow", "steps": [{"id": "a", "title": "A", "needs": ["a"]}]}
    errors = lint_formula(raw)
    assert [(e.code, e.path) for e in errors] == [("L_CYCLE_DETECTED", "steps[0].needs")]


def test_lint_unknown_need():
    errors = lint_formula(load_formula("examples/dangling-need.yaml"))
    assert [(e.code, e.path) for e in errors] == [("L_UNKNOWN_NEED", "steps[1].needs[1]")]
    assert "sign-off" in errors[0].message


def test_lint_duplicate_step_id():
    raw = {
        "name": "x",
        "type": "workflow",
        "steps": [{"id": "a", "title": "A"}, {"id": "a", "title": "A again"}],
    }
    errors = lint_formula(raw)
    assert [(e.code, e.path) for e in errors] == [("L_DUPLICATE_STEP_ID", "steps[1].id")]


def test_lint_cycles_follow_last_duplicate():
    base = {"name": "x", "type": "workflow"}
    shadowed = {
        **base,
        "steps": [
            {"id": "a", "title": "A", "needs": ["b"]},
            {"id": "b", "title": "B", "needs": ["a"]},
            {"id": "a", "title": "A again"},
        ],
    }
    assert [(e.code, e.path) for e in lint_formula(shadowed)] == [
        ("L_DUPLICATE_STEP_ID", "steps[2].id")
    ]

    redeclared = {
        **base,
        "steps": [
            {"id": "a", "title": "A"},
            {"id": "b", "title": "B", "needs": ["a"]},
            {"id": "a", "title": "A again", "needs": ["b"]},
        ],
    }
    assert [(e.code, e.path) for e in lint_formula(redeclared)] == [
        ("L_CYCLE_DETECTED", "steps[1].needs"),
        ("L_DUPLICATE_STEP_ID", "steps[2].id"),
    ]


def test_lint_steps_and_legs():
    raw = {
        "name": "x",
        "type": "workflow",
        "steps": [{"id": "a", "title": "A"}],
        "legs": [{"id": "l", "title": "L"}],
    }
    codes = [e.code for e in lint_formula(raw)]
    assert codes == ["L_STEPS_AND_LEGS"]


def test_lint_undeclared_var():
    raw = {
        "name": "x",
        "type": "convoy",
        "legs": [{"id": "l", "title": "Ship {{version}}", "focus": "{{area}}"}],
        "vars": {"version": {"default": "1"}},
    }
    errors = lint_formula(raw)
    assert [(e.code, e.path) for e in errors] == [("L_UNDECLARED_VAR", "legs[0].focus")]
    assert "{{area}}" in errors[0].message


def test_lint_tolerates_bad_shapes():
    assert lint_formula({"steps": "nope"}) == []
    assert lint_formula({"steps": [1, {"title": "no id"}]}) == []
