"""Critical Path Method over bead nodes.

Forward pass (topological order):
    ES = max(EF of blockers), 0 without blockers; EF = ES + duration
Backward pass (reverse order):
    LF = min(LS of successors), total duration without successors
    LS = max(0, LF - duration)
Slack = max(0, LS - ES); critical nodes have slack 0.

The reported path is one chain, not the whole zero-slack subgraph: it starts
at the first critical node (topological order) with no critical blocker and
follows the first critical entry of each node's ``blocks`` list.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from beadgraph.core.errors import DanglingReferenceError
from beadgraph.core.graph.toposort import topo_sort_ids
from beadgraph.core.model import BeadNode, CriticalPathResult
from beadgraph.core.validate.validate_beads import parse_bead_nodes

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 1


def compute_critical_path(
    beads: Sequence[BeadNode],
    *,
    strict: bool = False,
    default_duration: int = DEFAULT_DURATION,
) -> CriticalPathResult:
    """Compute total duration, per-bead slack and the critical path.

    Raises CycleDetectedError if ``blocked_by`` edges do not form a DAG.
    Ids with no matching bead are ignored unless ``strict`` is set, in which
    case DanglingReferenceError is raised.
    """
    if not beads:
        return CriticalPathResult(path=[], total_duration=0, slack={})

    by_id: dict[str, BeadNode] = {}
    duration: dict[str, int] = {}
    for b in beads:
        by_id[b.id] = b
        duration[b.id] = b.duration if b.duration is not None else default_duration

    _check_references(beads, by_id, strict=strict)

    order = topo_sort_ids(beads)

    earliest_start: dict[str, int] = {}
    earliest_finish: dict[str, int] = {}
    for bid in order:
        bead = by_id[bid]
        finishes = [earliest_finish[d] for d in bead.blocked_by if d in earliest_finish]
        es = max(finishes) if finishes else 0
        earliest_start[bid] = es
        earliest_finish[bid] = es + duration[bid]

    total = max(earliest_finish.values(), default=0)

    latest_start: dict[str, int] = {}
    for bid in reversed(order):
        bead = by_id[bid]
        starts = [latest_start[s] for s in bead.blocks if s in latest_start]
        lf = min(starts) if starts else total
        latest_start[bid] = max(0, lf - duration[bid])

    slack: dict[str, int] = {}
    critical: list[str] = []
    for bid in order:
        s = max(0, latest_start[bid] - earliest_start[bid])
        slack[bid] = s
        if s == 0:
            critical.append(bid)

    path = _build_path(critical, by_id)
    logger.debug(
        "critical path over %d beads: total=%d critical=%d path=%d",
        len(order),
        total,
        len(critical),
        len(path),
    )
    return CriticalPathResult(path=path, total_duration=total, slack=slack)


def analyze_beads(
    raw: Any,
    *,
    strict: bool = False,
    default_duration: int = DEFAULT_DURATION,
    file: Optional[str] = None,
) -> CriticalPathResult:
    """Validate a raw bead list, then compute its critical path."""
    beads = parse_bead_nodes(raw, file=file)
    return compute_critical_path(beads, strict=strict, default_duration=default_duration)


def _build_path(critical: list[str], by_id: dict[str, BeadNode]) -> list[str]:
    if not critical:
        return []

    critical_set = set(critical)
    start: Optional[str] = None
    for bid in critical:
        if not any(d in critical_set and d != bid for d in by_id[bid].blocked_by):
            start = bid
            break

    if start is None:
        return list(critical)

    path = [start]
    on_path = {start}
    current = start
    while True:
        nxt = next((s for s in by_id[current].blocks if s in critical_set), None)
        if nxt is None or nxt in on_path:
            break
        path.append(nxt)
        on_path.add(nxt)
        current = nxt
    return path


def _check_references(
    beads: Sequence[BeadNode], by_id: dict[str, BeadNode], *, strict: bool
) -> None:
    for i, b in enumerate(beads):
        for key, refs in (("blocked_by", b.blocked_by), ("blocks", b.blocks)):
            for ref in refs:
                if ref in by_id:
                    continue
                if strict:
                    raise DanglingReferenceError(
                        code="E_DANGLING_REFERENCE",
                        message=f"bead {b.id} references unknown bead: {ref}",
                        path=f"beads[{i}].{key}",
                    )
                logger.warning("ignoring unknown %s reference %r on bead %r", key, ref, b.id)
