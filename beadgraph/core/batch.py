"""Batched BuildMolecule / ComputeCriticalPath.

Items are independent: each result or error lands in its own BatchItem.
Only GraphError failures are captured; anything else is a bug and propagates.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Iterable, Optional, TypeVar

from beadgraph.core.errors import GraphError
from beadgraph.core.graph.critical_path import DEFAULT_DURATION, analyze_beads
from beadgraph.core.graph.molecule import generate_molecule
from beadgraph.core.model import CriticalPathResult, Molecule

T = TypeVar("T")


@dataclass(frozen=True)
class BatchItem(Generic[T]):
    ok: bool
    result: Optional[T] = None
    error: Optional[GraphError] = None


def build_molecules(raws: Iterable[Any], *, strict: bool = False) -> list[BatchItem[Molecule]]:
    out: list[BatchItem[Molecule]] = []
    for raw in raws:
        try:
            out.append(BatchItem(ok=True, result=generate_molecule(raw, strict=strict)))
        except GraphError as e:
            out.append(BatchItem(ok=False, error=e))
    return out


def compute_critical_paths(
    bead_lists: Iterable[Any],
    *,
    strict: bool = False,
    default_duration: int = DEFAULT_DURATION,
) -> list[BatchItem[CriticalPathResult]]:
    out: list[BatchItem[CriticalPathResult]] = []
    for raw in bead_lists:
        try:
            result = analyze_beads(raw, strict=strict, default_duration=default_duration)
            out.append(BatchItem(ok=True, result=result))
        except GraphError as e:
            out.append(BatchItem(ok=False, error=e))
    return out
