from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

from beadgraph.core.errors import MalformedInputError


FormulaType = Literal["convoy", "workflow", "expansion", "aspect"]


@dataclass(frozen=True)
class Step:
    id: str
    title: str
    description: str = ""
    needs: list[str] = field(default_factory=list)
    duration: Optional[int] = None  # minutes
    requires: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Leg:
    id: str
    title: str
    description: str = ""
    focus: str = ""
    agent: Optional[str] = None
    order: Optional[int] = None


@dataclass(frozen=True)
class Var:
    name: str
    description: str = ""
    default: Optional[str] = None
    required: bool = False
    pattern: Optional[str] = None
    enum: Optional[list[str]] = None


@dataclass(frozen=True)
class Formula:
    name: str
    type: FormulaType
    description: str = ""
    version: int = 1
    steps: list[Step] = field(default_factory=list)
    legs: list[Leg] = field(default_factory=list)
    vars: dict[str, Var] = field(default_factory=dict)


@dataclass(frozen=True)
class CookedFormula:
    formula: Formula
    cooked_at: datetime
    cooked_vars: dict[str, str]
    original_name: str


@dataclass(frozen=True)
class MoleculeBead:
    id: str
    title: str
    description: str
    labels: list[str]
    depends_on: list[int]  # bead indices that must complete first
    duration: Optional[int] = None
    requires: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "labels": list(self.labels),
            "depends_on": list(self.depends_on),
            "duration": self.duration,
            "requires": list(self.requires),
        }


@dataclass(frozen=True)
class BeadNode:
    id: str
    title: str = ""
    duration: Optional[int] = None
    blocked_by: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)
    description: str = ""
    labels: list[str] = field(default_factory=list)
    requires: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Molecule:
    formula_name: str
    formula_type: str
    beads: list[MoleculeBead]
    execution_order: list[int]
    has_cycle: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "formula_name": self.formula_name,
            "formula_type": self.formula_type,
            "beads": [b.to_dict() for b in self.beads],
            "execution_order": list(self.execution_order),
            "has_cycle": self.has_cycle,
        }

    def to_bead_nodes(self) -> list[BeadNode]:
        """Convert to CPM input with symmetric blocked_by/blocks lists.

        Raises MalformedInputError when two beads share an id, since CPM input
        is keyed by id.
        """
        n = len(self.beads)
        seen: set[str] = set()
        for i, bead in enumerate(self.beads):
            if bead.id in seen:
                raise MalformedInputError(
                    code="E_DUPLICATE_ID",
                    message=f"duplicate bead id: {bead.id}",
                    path=f"beads[{i}].id",
                )
            seen.add(bead.id)

        successors: list[list[str]] = [[] for _ in range(n)]
        for bead in self.beads:
            for dep in bead.depends_on:
                if 0 <= dep < n:
                    successors[dep].append(bead.id)

        out: list[BeadNode] = []
        for i, bead in enumerate(self.beads):
            out.append(
                BeadNode(
                    id=bead.id,
                    title=bead.title,
                    duration=bead.duration,
                    blocked_by=[self.beads[d].id for d in bead.depends_on if 0 <= d < n],
                    blocks=successors[i],
                    description=bead.description,
                    labels=list(bead.labels),
                    requires=list(bead.requires),
                )
            )
        return out


@dataclass(frozen=True)
class CriticalPathResult:
    path: list[str]
    total_duration: int
    slack: dict[str, int]  # topological order

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": list(self.path),
            "total_duration": self.total_duration,
            "slack": dict(self.slack),
        }
