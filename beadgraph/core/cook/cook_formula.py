"""Formula cooking: substitute ``{{name}}`` placeholders with variable values.

Declared var defaults apply first, supplied values override them. Placeholders
without a value stay verbatim so a partially-cooked formula is still usable.
"""
from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Mapping, Optional

from beadgraph.core.errors import MalformedInputError
from beadgraph.core.model import CookedFormula, Formula


PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")


def resolve_vars(formula: Formula, values: Mapping[str, str]) -> dict[str, str]:
    """Merge declared defaults with supplied values and check declared constraints."""
    resolved: dict[str, str] = {}
    for key, var in formula.vars.items():
        if var.default is not None:
            resolved[key] = var.default
    resolved.update(values)

    for key, var in formula.vars.items():
        value = resolved.get(key)
        if value is None:
            if var.required:
                raise MalformedInputError(
                    code="E_MISSING_VAR",
                    message=f"required variable is not set: {key}",
                    path=f"vars.{key}",
                )
            continue
        if var.enum is not None and value not in var.enum:
            raise MalformedInputError(
                code="E_INVALID_VAR",
                message=f"{key}={value!r} is not one of {var.enum}",
                path=f"vars.{key}",
            )
        if var.pattern is not None and _fullmatch(key, var.pattern, value) is None:
            raise MalformedInputError(
                code="E_INVALID_VAR",
                message=f"{key}={value!r} does not match pattern {var.pattern!r}",
                path=f"vars.{key}",
            )
    return resolved


def _fullmatch(key: str, pattern: str, value: str) -> Optional[re.Match[str]]:
    try:
        return re.fullmatch(pattern, value)
    except re.error as e:
        raise MalformedInputError(
            code="E_INVALID_TYPE",
            message=f"pattern is not a valid regular expression: {e}",
            path=f"vars.{key}.pattern",
        ) from e


def substitute(text: str, values: Mapping[str, str]) -> str:
    return PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), text)


def placeholders(text: str) -> list[str]:
    return PLACEHOLDER_RE.findall(text)


def cook_formula(
    formula: Formula,
    values: Optional[Mapping[str, str]] = None,
    *,
    now: Optional[datetime] = None,
) -> CookedFormula:
    resolved = resolve_vars(formula, values or {})

    steps = [
        replace(
            s,
            title=substitute(s.title, resolved),
            description=substitute(s.description, resolved),
        )
        for s in formula.steps
    ]
    legs = [
        replace(
            leg,
            title=substitute(leg.title, resolved),
            description=substitute(leg.description, resolved),
            focus=substitute(leg.focus, resolved),
        )
        for leg in formula.legs
    ]

    return CookedFormula(
        formula=replace(formula, steps=steps, legs=legs),
        cooked_at=now or datetime.now(timezone.utc),
        cooked_vars=resolved,
        original_name=formula.name,
    )


def parse_var_assignments(items: list[str]) -> dict[str, str]:
    """Parse ``key=value`` strings (CLI ``--var``) into a mapping."""
    out: dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise MalformedInputError(
                code="E_INVALID_VAR",
                message=f"expected key=value, got: {item}",
                path="var",
            )
        out[key.strip()] = value
    return out


def cooked_to_dict(cooked: CookedFormula) -> dict:
    f = cooked.formula
    out: dict = {
        "name": f.name,
        "description": f.description,
        "type": f.type,
        "version": f.version,
    }
    if f.steps:
        out["steps"] = [
            {
                "id": s.id,
                "title": s.title,
                "description": s.description,
                "needs": list(s.needs),
                **({"duration": s.duration} if s.duration is not None else {}),
                "requires": list(s.requires),
            }
            for s in f.steps
        ]
    if f.legs:
        out["legs"] = [
            {
                "id": leg.id,
                "title": leg.title,
                "description": leg.description,
                "focus": leg.focus,
                **({"agent": leg.agent} if leg.agent is not None else {}),
                **({"order": leg.order} if leg.order is not None else {}),
            }
            for leg in f.legs
        ]
    out["cooked_at"] = cooked.cooked_at.isoformat()
    out["cooked_vars"] = dict(cooked.cooked_vars)
    out["original_name"] = cooked.original_name
    return out
