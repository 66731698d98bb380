"""Molecule generation: formula steps/legs -> bead chain with execution order.

Steps resolve their ``needs`` through an id -> index map; references that name
no step are dropped. Legs are chained sequentially. The resulting dependency
lists are ordered with the builder (never-failing) topological sort, so a
molecule is always returned; callers inspect ``has_cycle``.
"""
from __future__ import annotations

import logging
from typing import Any, Union

from beadgraph.core.errors import DanglingReferenceError
from beadgraph.core.graph.toposort import topo_sort_indices
from beadgraph.core.model import CookedFormula, Formula, Molecule, MoleculeBead
from beadgraph.core.validate.validate_formula import parse_formula

logger = logging.getLogger(__name__)

MOLECULE_LABEL = "molecule"
CONVOY_LABEL = "convoy"


def build_molecule(
    formula: Union[Formula, CookedFormula],
    *,
    strict: bool = False,
) -> Molecule:
    if isinstance(formula, CookedFormula):
        formula = formula.formula

    beads: list[MoleculeBead] = []
    id_to_index: dict[str, int] = {}

    for i, step in enumerate(formula.steps):
        id_to_index[step.id] = i

    for i, step in enumerate(formula.steps):
        deps: list[int] = []
        for need in step.needs:
            idx = id_to_index.get(need)
            if idx is None:
                if strict:
                    raise DanglingReferenceError(
                        code="E_DANGLING_REFERENCE",
                        message=f"step {step.id} needs unknown step: {need}",
                        path=f"steps[{i}].needs",
                    )
                logger.warning("dropping unknown need %r of step %r", need, step.id)
                continue
            deps.append(idx)

        beads.append(
            MoleculeBead(
                id=step.id,
                title=step.title,
                description=step.description,
                labels=[MOLECULE_LABEL, formula.name],
                depends_on=deps,
                duration=step.duration,
                requires=list(step.requires),
            )
        )

    # Leg i depends on raw index i-1, counted within the leg block only.
    for i, leg in enumerate(formula.legs):
        beads.append(
            MoleculeBead(
                id=leg.id,
                title=leg.title,
                description=leg.description,
                labels=[MOLECULE_LABEL, CONVOY_LABEL, formula.name],
                depends_on=[i - 1] if i > 0 else [],
                duration=None,
                requires=[],
            )
        )

    execution_order, has_cycle = topo_sort_indices([b.depends_on for b in beads])
    if has_cycle:
        logger.debug(
            "molecule %r has a cycle: %d of %d beads ordered",
            formula.name,
            len(execution_order),
            len(beads),
        )

    return Molecule(
        formula_name=formula.name,
        formula_type=formula.type,
        beads=beads,
        execution_order=execution_order,
        has_cycle=has_cycle,
    )


def generate_molecule(raw: Any, *, strict: bool = False) -> Molecule:
    """Validate a raw formula mapping and build its molecule.

    Raises MalformedInputError when the mapping cannot be decoded.
    """
    return build_molecule(parse_formula(raw), strict=strict)
