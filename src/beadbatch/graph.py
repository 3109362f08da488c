"""Dependency graph construction and cycle-tolerant depth assignment."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from beadbatch import log
from beadbatch.tasks.model import Task


@dataclass(frozen=True)
class DepthResult:
    depths: dict[str, int] = field(default_factory=dict)
    cycles: tuple[tuple[str, ...], ...] = ()

    def __getitem__(self, task_id: str) -> int:
        return self.depths[task_id]

    def get(self, task_id: str, default: int = 0) -> int:
        return self.depths.get(task_id, default)


def build_dependency_graph(tasks: Iterable[Task]) -> dict[str, list[str]]:
    """Map each task id to the ids that block it, restricted to the given tasks.

    ``blocked_by`` and ``dependencies`` are unioned in first-seen order. Blockers
    outside the set are dropped: they belong to another epic and never hold a
    batch back.
    """
    tasks = list(tasks)
    known = {t.id for t in tasks}
    graph: dict[str, list[str]] = {}
    for task in tasks:
        blockers = graph.setdefault(task.id, [])
        for dep in [*task.blocked_by, *task.dependencies]:
            if dep in known and dep != task.id and dep not in blockers:
                blockers.append(dep)
    return graph


def assign_depths(task_ids: Iterable[str], graph: dict[str, list[str]]) -> DepthResult:
    """Longest in-set blocking chain per task.

    Tasks are indexed into an arena and walked with an explicit-stack Tarjan
    traversal, so there is no recursion limit. A strongly-connected component
    is emitted only after every component it depends on, which lets its depth
    be settled on emission. Members of a dependency cycle share one depth and
    the cycle is reported in ``DepthResult.cycles``.
    """
    ids = list(dict.fromkeys(task_ids))
    index = {tid: i for i, tid in enumerate(ids)}
    n = len(ids)
    adj: list[list[int]] = [
        [index[b] for b in graph.get(tid, []) if b in index and b != tid] for tid in ids
    ]

    order = [-1] * n  # discovery index, -1 = unvisited
    low = [0] * n
    on_path = [False] * n
    comp = [-1] * n
    comp_depth: list[int] = []
    path: list[int] = []
    cycles: list[tuple[str, ...]] = []
    counter = 0

    for root in range(n):
        if order[root] != -1:
            continue
        order[root] = low[root] = counter
        counter += 1
        path.append(root)
        on_path[root] = True
        work: list[tuple[int, int]] = [(root, 0)]

        while work:
            v, pos = work[-1]
            if pos < len(adj[v]):
                work[-1] = (v, pos + 1)
                w = adj[v][pos]
                if order[w] == -1:
                    order[w] = low[w] = counter
                    counter += 1
                    path.append(w)
                    on_path[w] = True
                    work.append((w, 0))
                elif on_path[w]:
                    low[v] = min(low[v], order[w])
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[v])
            if low[v] != order[v]:
                continue

            c = len(comp_depth)
            members: list[int] = []
            while True:
                w = path.pop()
                on_path[w] = False
                comp[w] = c
                members.append(w)
                if w == v:
                    break

            depth = 0
            for m in members:
                for b in adj[m]:
                    if comp[b] != c:
                        depth = max(depth, comp_depth[comp[b]] + 1)
            comp_depth.append(depth)

            if len(members) > 1:
                cycle = tuple(sorted(ids[m] for m in members))
                cycles.append(cycle)
                log.warn(f"Dependency cycle detected: {', '.join(cycle)} (scheduled together)")

    depths = {tid: comp_depth[comp[i]] for i, tid in enumerate(ids)}
    return DepthResult(depths=depths, cycles=tuple(sorted(cycles)))
