"""Session state: the current snapshot, its batches, and the mutation ledger."""

from __future__ import annotations

from dataclasses import replace

from beadbatch import log
from beadbatch.batches import compute_batches
from beadbatch.errors import FetchResult, MutationResult, TransportError
from beadbatch.reconcile import RecentUpdateLedger, merge_snapshot, repoint_selection
from beadbatch.source import ListFilters, TaskSource
from beadbatch.tasks.model import Batch, Task, TaskStatus


class BatchStore:
    """Owns the task list and the ledger; both change only through
    :meth:`fetch` and :meth:`set_status`.

    Usage::

        store = BatchStore(source)
        store.epic_id = "bd-a3f8"
        await store.fetch()                       # merge snapshot, recompute
        await store.set_status(tid, TaskStatus.CLOSED)
        store.batches                             # latest list[Batch]
    """

    def __init__(
        self,
        source: TaskSource,
        ledger: RecentUpdateLedger | None = None,
        filters: ListFilters | None = None,
    ) -> None:
        self.source = source
        self.ledger = ledger if ledger is not None else RecentUpdateLedger()
        self.filters = filters
        self.tasks: list[Task] = []
        self.batches: list[Batch] = []
        self.epic_id: str | None = None
        self.selected: Task | None = None
        self.error: str | None = None
        self._fetching = False

    # ── queries ──────────────────────────────────────────────────

    @property
    def fetching(self) -> bool:
        return self._fetching

    def get_task(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def compute_batches(self, epic_id: str) -> list[Batch]:
        """Recompute from the loaded snapshot; no fetch."""
        self.epic_id = epic_id
        self.batches = compute_batches(self.tasks, epic_id)
        return self.batches

    def select(self, task_id: str | None) -> Task | None:
        self.selected = repoint_selection(task_id, self.tasks)
        return self.selected

    # ── entry points ─────────────────────────────────────────────

    async def fetch(self) -> FetchResult:
        """Fetch, merge and recompute. A fetch already in flight drops this one."""
        if self._fetching:
            log.debug("Fetch already in flight, dropping request")
            return FetchResult(ok=True, skipped=True)

        self._fetching = True
        try:
            fetched = await self.source.list_tasks(self.filters)
        except TransportError as exc:
            self.error = str(exc)
            log.error(f"Fetching tasks failed ({exc.kind}): {exc}")
            return FetchResult(ok=False, error=self.error)
        finally:
            self._fetching = False

        self.tasks = merge_snapshot(fetched, self.tasks, self.ledger)
        self.error = None
        if self.selected is not None:
            self.selected = repoint_selection(self.selected.id, self.tasks)
        self._recompute()
        return FetchResult(ok=True, task_count=len(self.tasks))

    async def set_status(self, task_id: str, status: TaskStatus) -> MutationResult:
        """Apply a status change optimistically, then confirm it with the source."""
        current = self.get_task(task_id)
        if current is None:
            return MutationResult(ok=False, error=f"unknown task {task_id}")

        prior = current.status
        self.ledger.record(task_id)
        self._replace_status(task_id, status)
        log.debug(f"Task {task_id}: {prior.value} -> {status.value} (optimistic)")

        try:
            await self.source.update_status(task_id, status)
        except TransportError as exc:
            self._rollback(task_id, prior)
            log.error(f"Updating {task_id} failed, reverted to {prior.value}: {exc}")
            return MutationResult(ok=False, error=str(exc))
        except BaseException:
            self._rollback(task_id, prior)
            raise

        # The ledger entry stays until it expires; a racing re-fetch may still be stale.
        return MutationResult(ok=True)

    def close(self) -> None:
        self.ledger.clear()
        self.tasks = []
        self.batches = []
        self.selected = None

    # ── internals ────────────────────────────────────────────────

    def _rollback(self, task_id: str, prior: TaskStatus) -> None:
        self.ledger.discard(task_id)
        self._replace_status(task_id, prior)

    def _replace_status(self, task_id: str, status: TaskStatus) -> None:
        self.tasks = [replace(t, status=status) if t.id == task_id else t for t in self.tasks]
        if self.selected is not None and self.selected.id == task_id:
            self.selected = self.get_task(task_id)
        self._recompute()

    def _recompute(self) -> None:
        if self.epic_id is not None:
            self.batches = compute_batches(self.tasks, self.epic_id)
