"""Decides when the batch pipeline re-runs: immediately, or debounced."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from beadbatch import log
from beadbatch.config import DEFAULT_DEBOUNCE_DELAY
from beadbatch.errors import FetchResult
from beadbatch.source import TaskSource, Unsubscribe
from beadbatch.store import BatchStore
from beadbatch.tasks.model import Batch

BatchListener = Callable[[list[Batch]], None]


class RecomputeScheduler:
    """Triggers fetch-and-recompute runs on a :class:`BatchStore`.

    * ``set_epic`` and ``refresh`` run at once.
    * ``notify_changed`` starts a timer on the first notification of a burst;
      later notifications are absorbed until it fires, then one run happens.
    """

    def __init__(
        self,
        store: BatchStore,
        debounce: float = DEFAULT_DEBOUNCE_DELAY,
        on_update: BatchListener | None = None,
    ) -> None:
        self.store = store
        self.debounce = debounce
        self.on_update = on_update
        self.runs = 0
        self._timer: asyncio.TimerHandle | None = None
        self._inflight: set[asyncio.Task[FetchResult]] = set()
        self._unsubscribe: Unsubscribe | None = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def attach(self, source: TaskSource) -> None:
        self.detach()
        self._unsubscribe = source.on_change(self.notify_changed)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ── triggers ─────────────────────────────────────────────────

    async def set_epic(self, epic_id: str) -> FetchResult:
        """Scope to *epic_id* and run now; a no-op when the scope is unchanged."""
        if epic_id == self.store.epic_id:
            return FetchResult(ok=True, skipped=True)
        self.store.epic_id = epic_id
        return await self._run()

    async def refresh(self) -> FetchResult:
        self._cancel_timer()
        return await self._run()

    def notify_changed(self) -> None:
        if self._timer is not None:
            log.debug("Change notification absorbed by pending recompute")
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce, self._fire)

    # ── lifecycle ────────────────────────────────────────────────

    async def wait_idle(self) -> None:
        """Wait for runs started by the debounce timer."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def close(self) -> None:
        self.detach()
        self._cancel_timer()
        for task in list(self._inflight):
            task.cancel()

    # ── internals ────────────────────────────────────────────────

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        task = asyncio.ensure_future(self._run())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        task.add_done_callback(self._report_failure)

    def _report_failure(self, task: asyncio.Task[FetchResult]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error(f"Debounced recompute failed: {exc!r}")

    async def _run(self) -> FetchResult:
        result = await self.store.fetch()
        if result.skipped:
            return result
        self.runs += 1
        if result.ok and self.on_update is not None:
            self.on_update(self.store.batches)
        return result
