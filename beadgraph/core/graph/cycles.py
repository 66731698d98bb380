from __future__ import annotations

from typing import Mapping, Sequence


def find_cycles(id_to_deps: Mapping[str, Sequence[str]]) -> list[list[str]]:
    """Return each distinct dependency cycle as a closed path (``[a, b, a]``).

    Dependencies naming unknown ids are skipped. Iteration follows mapping
    order so results are stable for a given input.
    """
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {nid: WHITE for nid in id_to_deps.keys()}
    stack: list[str] = []
    emitted: set[str] = set()
    out: list[list[str]] = []

    def dfs(u: str) -> None:
        state[u] = GRAY
        stack.append(u)
        for v in id_to_deps.get(u, []):
            if v not in state:
                continue
            if state[v] == GRAY:
                # cycle: v ... u -> v
                idx = stack.index(v)
                cycle = stack[idx:] + [v]
                key = "->".join(cycle)
                if key not in emitted:
                    emitted.add(key)
                    out.append(cycle)
            elif state[v] == WHITE:
                dfs(v)
        stack.pop()
        state[u] = BLACK

    for nid in list(state.keys()):
        if state[nid] == WHITE:
            dfs(nid)

    return out


def format_cycle(cycle: Sequence[str]) -> str:
    return " -> ".join(cycle)
