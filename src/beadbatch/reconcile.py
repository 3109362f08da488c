"""Reconcile re-fetched snapshots with optimistic local status changes.

A local status change is applied before the tracker has durably written it.
A re-fetch triggered by that same write can arrive first and report the old
status; for ``window`` seconds after a mutation the local status wins.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import replace

from beadbatch.config import DEFAULT_OVERRIDE_WINDOW
from beadbatch.tasks.model import Task

Clock = Callable[[], float]


class RecentUpdateLedger:
    """Task id -> timestamp of the most recent local mutation."""

    def __init__(self, window: float = DEFAULT_OVERRIDE_WINDOW, clock: Clock = time.time) -> None:
        self.window = window
        self.clock = clock
        self._entries: dict[str, float] = {}

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, task_id: str, at: float | None = None) -> None:
        self._entries[task_id] = self.clock() if at is None else at

    def discard(self, task_id: str) -> None:
        self._entries.pop(task_id, None)

    def is_fresh(self, task_id: str, now: float | None = None) -> bool:
        stamp = self._entries.get(task_id)
        if stamp is None:
            return False
        now = self.clock() if now is None else now
        return now - stamp <= self.window

    def prune(self, now: float | None = None) -> list[str]:
        """Drop entries older than the window; return the dropped ids."""
        now = self.clock() if now is None else now
        expired = [tid for tid, stamp in self._entries.items() if now - stamp > self.window]
        for tid in expired:
            del self._entries[tid]
        return expired

    def clear(self) -> None:
        self._entries.clear()


def merge_snapshot(
    fetched: Iterable[Task],
    local: Iterable[Task],
    ledger: RecentUpdateLedger,
    now: float | None = None,
) -> list[Task]:
    """Fetched records win, except the status of recently mutated tasks."""
    now = ledger.clock() if now is None else now
    local_by_id = {t.id: t for t in local}
    merged: list[Task] = []
    for task in fetched:
        held = local_by_id.get(task.id)
        if held is not None and held.status != task.status and ledger.is_fresh(task.id, now):
            merged.append(replace(task, status=held.status))
        else:
            merged.append(task)
    ledger.prune(now)
    return merged


def repoint_selection(selected_id: str | None, merged: Iterable[Task]) -> Task | None:
    """The merged object for a selected id, or None once the task is gone."""
    if selected_id is None:
        return None
    for task in merged:
        if task.id == selected_id:
            return task
    return None
