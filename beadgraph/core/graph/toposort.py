"""Kahn ordering shared by the molecule builder and the CPM engine.

Both callers go through ``kahn_order``; they differ only in what happens when a
cycle leaves nodes unsorted:

- ``return_partial``: return the sortable prefix plus ``has_cycle=True``.
- ``fail_closed``: raise ``CycleDetectedError``.

The queue is FIFO and seeded in key order, so ties resolve by ascending
original position.
"""
from __future__ import annotations

import logging
from collections import deque
from typing import Hashable, Literal, Mapping, Sequence, TypeVar

from beadgraph.core.errors import CycleDetectedError
from beadgraph.core.model import BeadNode

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)

OnCycle = Literal["return_partial", "fail_closed"]


def kahn_order(
    keys: Sequence[K],
    predecessors: Mapping[K, Sequence[K]],
    *,
    on_cycle: OnCycle = "return_partial",
) -> tuple[list[K], bool]:
    """Order ``keys`` so every predecessor precedes its dependents.

    ``predecessors`` must only reference members of ``keys``; callers filter
    dangling references before calling.
    """

    remaining: dict[K, int] = {}
    successors: dict[K, list[K]] = {k: [] for k in keys}
    for k in keys:
        preds = predecessors.get(k, ())
        remaining[k] = len(preds)
        for p in preds:
            successors[p].append(k)

    q: deque[K] = deque(k for k in keys if remaining[k] == 0)
    order: list[K] = []
    while q:
        cur = q.popleft()
        order.append(cur)
        for nxt in successors[cur]:
            remaining[nxt] -= 1
            if remaining[nxt] == 0:
                q.append(nxt)

    has_cycle = len(order) != len(keys)
    if has_cycle:
        placed = set(order)
        stuck = [k for k in keys if k not in placed]
        logger.debug("ordering left %d of %d nodes unsorted", len(stuck), len(keys))
        if on_cycle == "fail_closed":
            raise CycleDetectedError(
                code="E_CYCLE_DETECTED",
                message="cycle detected in dependency graph: "
                + ", ".join(str(k) for k in stuck),
                path="beads",
                cycle_ids=tuple(str(k) for k in stuck),
            )
    return order, has_cycle


def topo_sort_indices(depends_on: Sequence[Sequence[int]]) -> tuple[list[int], bool]:
    """Builder ordering over index-based dependency lists. Never raises on a cycle."""
    n = len(depends_on)
    keys = list(range(n))
    preds = {i: [d for d in deps if 0 <= d < n] for i, deps in enumerate(depends_on)}
    return kahn_order(keys, preds, on_cycle="return_partial")


def topo_sort_ids(beads: Sequence[BeadNode]) -> list[str]:
    """CPM ordering over bead ids, built from ``blocked_by``.

    Raises CycleDetectedError when the order is incomplete.
    """
    keys: list[str] = []
    known: set[str] = set()
    for b in beads:
        if b.id not in known:
            known.add(b.id)
            keys.append(b.id)

    preds: dict[str, list[str]] = {}
    for b in beads:
        preds[b.id] = [d for d in b.blocked_by if d in known]

    order, _ = kahn_order(keys, preds, on_cycle="fail_closed")
    return order
