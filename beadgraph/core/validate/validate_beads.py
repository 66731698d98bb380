from __future__ import annotations

from typing import Any, Optional

from beadgraph.core.errors import MalformedInputError
from beadgraph.core.model import BeadNode


def _is_list_of_str(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def parse_bead_nodes(raw: Any, *, file: Optional[str] = None) -> list[BeadNode]:
    """Decode a raw bead list into BeadNodes.

    Accepts either a list of bead objects or a mapping with a ``beads`` list.
    Raises MalformedInputError on the first structural problem. References to
    unknown ids are left in place; the CPM engine ignores them.
    """

    if isinstance(raw, dict):
        if file is None and isinstance(raw.get("__file__"), str):
            file = raw["__file__"]
        raw = raw.get("beads")
    if not isinstance(raw, list):
        raise MalformedInputError(
            code="E_INVALID_TYPE",
            message="beads must be an array",
            file=file,
            path="beads",
        )

    out: list[BeadNode] = []
    seen: set[str] = set()
    for i, b in enumerate(raw):
        p = f"beads[{i}]"
        if not isinstance(b, dict):
            raise MalformedInputError(
                code="E_INVALID_TYPE", message="bead must be an object", file=file, path=p
            )

        bid = b.get("id")
        if not isinstance(bid, str) or not bid.strip():
            raise MalformedInputError(
                code="E_REQUIRED_FIELD",
                message="id is required and must be a non-empty string",
                file=file,
                path=f"{p}.id",
            )
        if bid in seen:
            raise MalformedInputError(
                code="E_DUPLICATE_ID",
                message=f"duplicate bead id: {bid}",
                file=file,
                path=f"{p}.id",
            )
        seen.add(bid)

        duration = b.get("duration")
        if duration is not None and (
            not isinstance(duration, int) or isinstance(duration, bool) or duration < 0
        ):
            raise MalformedInputError(
                code="E_INVALID_TYPE",
                message="duration must be a non-negative integer",
                file=file,
                path=f"{p}.duration",
            )

        lists: dict[str, list[str]] = {}
        for key in ("blocked_by", "blocks", "labels", "requires"):
            v = b.get(key)
            if v is None:
                v = []
            if not _is_list_of_str(v):
                raise MalformedInputError(
                    code="E_INVALID_TYPE",
                    message=f"{key} must be an array of strings",
                    file=file,
                    path=f"{p}.{key}",
                )
            lists[key] = list(v)

        for key in ("title", "description"):
            v = b.get(key)
            if v is not None and not isinstance(v, str):
                raise MalformedInputError(
                    code="E_INVALID_TYPE",
                    message=f"{key} must be a string",
                    file=file,
                    path=f"{p}.{key}",
                )

        out.append(
            BeadNode(
                id=bid,
                title=b.get("title") or "",
                duration=duration,
                blocked_by=lists["blocked_by"],
                blocks=lists["blocks"],
                description=b.get("description") or "",
                labels=lists["labels"],
                requires=lists["requires"],
            )
        )
    return out
