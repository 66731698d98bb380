from __future__ import annotations

import re
from typing import Any, Callable, Iterable, Optional, cast

from beadgraph.core.errors import FormulaValidationError, MalformedInputError
from beadgraph.core.model import Formula, FormulaType, Leg, Step, Var


ALLOWED_FORMULA_TYPES: set[str] = {"convoy", "workflow", "expansion", "aspect"}

_Report = Callable[[str, str, str], None]


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def _is_non_negative_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v >= 0


def validate_formula(
    raw: dict[str, Any],
) -> tuple[Optional[Formula], list[FormulaValidationError]]:
    """Validate a raw formula mapping.

    Returns (formula, errors). Formula is None when errors exist.

    Structural checks only: unknown ``needs`` references and cycles are not
    errors here (the builder drops/flags them, lint reports them).
    """

    file = cast(Optional[str], raw.get("__file__"))
    errors: list[FormulaValidationError] = []

    def err(code: str, message: str, path: str) -> None:
        errors.append(FormulaValidationError(code=code, message=message, file=file, path=path))

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        err("E_REQUIRED_FIELD", "name is required and must be a non-empty string", "name")

    ftype = raw.get("type")
    if not isinstance(ftype, str) or ftype not in ALLOWED_FORMULA_TYPES:
        err("E_INVALID_ENUM", f"type must be one of {sorted(ALLOWED_FORMULA_TYPES)}", "type")

    description = raw.get("description", "")
    if description is None:
        description = ""
    if not isinstance(description, str):
        err("E_INVALID_TYPE", "description must be a string", "description")

    version = raw.get("version", 1)
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        err("E_INVALID_TYPE", "version must be an integer >= 1", "version")

    steps = _validate_steps(raw.get("steps"), err)
    legs = _validate_legs(raw.get("legs"), err)
    variables = _validate_vars(raw.get("vars"), err)

    if errors:
        return None, _sorted(errors)

    formula = Formula(
        name=cast(str, name),
        type=cast(FormulaType, ftype),
        description=cast(str, description),
        version=cast(int, version),
        steps=steps,
        legs=legs,
        vars=variables,
    )
    return formula, []


def parse_formula(raw: Any) -> Formula:
    """Decode a raw mapping into a Formula or raise MalformedInputError."""
    if not isinstance(raw, dict):
        raise MalformedInputError(
            code="E_INVALID_TOP_LEVEL",
            message="formula must be a mapping/object",
        )
    formula, errors = validate_formula(raw)
    if errors or formula is None:
        first = errors[0]
        raise MalformedInputError(
            code=first.code,
            message=first.message,
            file=first.file,
            path=first.path,
        )
    return formula


def _validate_steps(value: Any, err: _Report) -> list[Step]:
    if value is None:
        return []
    if not isinstance(value, list):
        err("E_INVALID_TYPE", "steps must be an array", "steps")
        return []

    out: list[Step] = []
    for i, s in enumerate(value):
        p = f"steps[{i}]"
        if not isinstance(s, dict):
            err("E_INVALID_TYPE", "step must be an object", p)
            continue

        sid = s.get("id")
        if not isinstance(sid, str) or not sid.strip():
            err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{p}.id")
            continue

        title = s.get("title")
        if not isinstance(title, str) or not title.strip():
            err("E_REQUIRED_FIELD", "title is required and must be a non-empty string", f"{p}.title")
            continue

        description = s.get("description") or ""
        if not isinstance(description, str):
            err("E_INVALID_TYPE", "description must be a string", f"{p}.description")
            continue

        needs = s.get("needs") or []
        if not _is_list_of_str(needs):
            err("E_INVALID_TYPE", "needs must be an array of strings", f"{p}.needs")
            continue

        duration = s.get("duration")
        if duration is not None and not _is_non_negative_int(duration):
            err("E_INVALID_TYPE", "duration must be a non-negative integer", f"{p}.duration")
            continue

        requires = s.get("requires") or []
        if not _is_list_of_str(requires):
            err("E_INVALID_TYPE", "requires must be an array of strings", f"{p}.requires")
            continue

        out.append(
            Step(
                id=sid,
                title=title,
                description=description,
                needs=list(needs),
                duration=duration,
                requires=list(requires),
            )
        )
    return out


def _validate_legs(value: Any, err: _Report) -> list[Leg]:
    if value is None:
        return []
    if not isinstance(value, list):
        err("E_INVALID_TYPE", "legs must be an array", "legs")
        return []

    out: list[Leg] = []
    for i, leg in enumerate(value):
        p = f"legs[{i}]"
        if not isinstance(leg, dict):
            err("E_INVALID_TYPE", "leg must be an object", p)
            continue

        lid = leg.get("id")
        if not isinstance(lid, str) or not lid.strip():
            err("E_REQUIRED_FIELD", "id is required and must be a non-empty string", f"{p}.id")
            continue

        title = leg.get("title")
        if not isinstance(title, str) or not title.strip():
            err("E_REQUIRED_FIELD", "title is required and must be a non-empty string", f"{p}.title")
            continue

        bad = False
        for key in ("description", "focus"):
            v = leg.get(key)
            if v is not None and not isinstance(v, str):
                err("E_INVALID_TYPE", f"{key} must be a string", f"{p}.{key}")
                bad = True
        agent = leg.get("agent")
        if agent is not None and not isinstance(agent, str):
            err("E_INVALID_TYPE", "agent must be a string", f"{p}.agent")
            bad = True
        order = leg.get("order")
        if order is not None and (not isinstance(order, int) or isinstance(order, bool)):
            err("E_INVALID_TYPE", "order must be an integer", f"{p}.order")
            bad = True
        if bad:
            continue

        out.append(
            Leg(
                id=lid,
                title=title,
                description=leg.get("description") or "",
                focus=leg.get("focus") or "",
                agent=agent,
                order=order,
            )
        )
    return out


def _validate_vars(value: Any, err: _Report) -> dict[str, Var]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        err("E_INVALID_TYPE", "vars must be a mapping of name -> var", "vars")
        return {}

    out: dict[str, Var] = {}
    for key, v in value.items():
        p = f"vars.{key}"
        if not isinstance(key, str) or not key.strip():
            err("E_INVALID_TYPE", "var names must be non-empty strings", "vars")
            continue
        if v is None:
            v = {}
        if not isinstance(v, dict):
            err("E_INVALID_TYPE", "var must be an object", p)
            continue

        default = v.get("default")
        if default is not None and not isinstance(default, str):
            err("E_INVALID_TYPE", "default must be a string", f"{p}.default")
            continue
        required = v.get("required", False)
        if not isinstance(required, bool):
            err("E_INVALID_TYPE", "required must be a boolean", f"{p}.required")
            continue
        pattern = v.get("pattern")
        if pattern is not None and not isinstance(pattern, str):
            err("E_INVALID_TYPE", "pattern must be a string", f"{p}.pattern")
            continue
        if pattern is not None:
            try:
                re.compile(pattern)
            except re.error as e:
                err("E_INVALID_TYPE", f"pattern is not a valid regular expression: {e}", f"{p}.pattern")
                continue
        enum = v.get("enum")
        if enum is not None and not _is_list_of_str(enum):
            err("E_INVALID_TYPE", "enum must be an array of strings", f"{p}.enum")
            continue

        name = v.get("name") or key
        out[key] = Var(
            name=name if isinstance(name, str) else key,
            description=v.get("description") or "",
            default=default,
            required=required,
            pattern=pattern,
            enum=list(enum) if enum is not None else None,
        )
    return out


def summarize_formula(formula: Formula) -> str:
    return (
        f"OK: {formula.name} ({formula.type} v{formula.version})\n"
        f"Steps: {len(formula.steps)}, Legs: {len(formula.legs)}, Vars: {len(formula.vars)}"
    )


def _sorted(errors: Iterable[FormulaValidationError]) -> list[FormulaValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
