from __future__ import annotations

from collections import Counter
from typing import Any, Optional

from beadgraph.core.cook.cook_formula import placeholders
from beadgraph.core.errors import FormulaValidationError
from beadgraph.core.graph.cycles import find_cycles, format_cycle


# Formula lint rules:
# - L_DUPLICATE_STEP_ID: duplicate step ids (later one wins need resolution)
# - L_UNKNOWN_NEED: needs entry naming no step (dropped by the builder)
# - L_CYCLE_DETECTED: dependency cycle among steps
# - L_STEPS_AND_LEGS: both steps and legs populated
# - L_UNDECLARED_VAR: {{name}} placeholder with no vars entry


def lint_formula(raw: dict[str, Any]) -> list[FormulaValidationError]:
    """Lint a formula.

    Lint runs *in addition to* structural validation. It is allowed to operate
    on partially-invalid inputs (best effort) and surfaces things the builder
    tolerates silently.
    """

    file = _cast_optional_str(raw.get("__file__"))

    steps = raw.get("steps")
    if steps is None:
        steps = []
    legs = raw.get("legs")
    if not isinstance(steps, list):
        # Let validator handle shape.
        return []

    errors: list[FormulaValidationError] = []

    # Index steps (best effort); later duplicates win, as in the builder.
    id_to_index: dict[str, int] = {}
    id_to_needs: dict[str, list[str]] = {}
    ids: list[str] = []
    for i, s in enumerate(steps):
        if not isinstance(s, dict):
            continue
        sid = s.get("id")
        if not isinstance(sid, str):
            continue
        ids.append(sid)
        id_to_index[sid] = i
        needs_raw = s.get("needs")
        needs: list[str] = []
        if isinstance(needs_raw, list):
            needs = [n for n in needs_raw if isinstance(n, str)]
        id_to_needs[sid] = needs

    # Rule: duplicate step ids
    counts = Counter(ids)
    dupes = {k: v for k, v in counts.items() if v > 1}
    if dupes:
        seen: set[str] = set()
        for i, s in enumerate(steps):
            if not isinstance(s, dict):
                continue
            sid = s.get("id")
            if not isinstance(sid, str) or sid not in dupes:
                continue
            if sid not in seen:
                seen.add(sid)
                continue
            errors.append(
                FormulaValidationError(
                    code="L_DUPLICATE_STEP_ID",
                    message=f"duplicate step id: {sid} (count={dupes[sid]})",
                    file=file,
                    path=f"steps[{i}].id",
                )
            )

    # Rule: needs must name a step
    known = set(ids)
    for i, s in enumerate(steps):
        if not isinstance(s, dict) or not isinstance(s.get("needs"), list):
            continue
        for ni, need in enumerate(s["needs"]):
            if isinstance(need, str) and need not in known:
                errors.append(
                    FormulaValidationError(
                        code="L_UNKNOWN_NEED",
                        message=f"needs references unknown step: {need}",
                        file=file,
                        path=f"steps[{i}].needs[{ni}]",
                    )
                )

    # Rule: cycle detection
    for cycle in find_cycles(id_to_needs):
        errors.append(
            FormulaValidationError(
                code="L_CYCLE_DETECTED",
                message="dependency cycle detected: " + format_cycle(cycle),
                file=file,
                path=f"steps[{id_to_index.get(cycle[-2], 0)}].needs",
            )
        )

    # Rule: one shape per formula
    if steps and isinstance(legs, list) and legs:
        errors.append(
            FormulaValidationError(
                code="L_STEPS_AND_LEGS",
                message="formula defines both steps and legs; leg dependencies index from the start of the bead list",
                file=file,
                path="legs",
            )
        )

    # Rule: placeholders must be declared
    declared = raw.get("vars")
    declared_names = set(declared.keys()) if isinstance(declared, dict) else set()
    for path, text in _text_fields(steps, legs):
        for name in placeholders(text):
            if name not in declared_names:
                errors.append(
                    FormulaValidationError(
                        code="L_UNDECLARED_VAR",
                        message=f"placeholder {{{{{name}}}}} has no vars entry",
                        file=file,
                        path=path,
                    )
                )

    return _sorted(errors)


def _text_fields(steps: list[Any], legs: Any) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    for i, s in enumerate(steps):
        if not isinstance(s, dict):
            continue
        for key in ("title", "description"):
            if isinstance(s.get(key), str):
                out.append((f"steps[{i}].{key}", s[key]))
    if isinstance(legs, list):
        for i, leg in enumerate(legs):
            if not isinstance(leg, dict):
                continue
            for key in ("title", "description", "focus"):
                if isinstance(leg.get(key), str):
                    out.append((f"legs[{i}].{key}", leg[key]))
    return out


def _sorted(errors: list[FormulaValidationError]) -> list[FormulaValidationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))


def _cast_optional_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None
