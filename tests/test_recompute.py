"""Tests for beadbatch.recompute — debounce, immediate triggers and the fetch guard."""

from __future__ import annotations

import asyncio

import pytest

from beadbatch import log
from beadbatch.recompute import RecomputeScheduler
from beadbatch.reconcile import RecentUpdateLedger
from beadbatch.store import BatchStore

DEBOUNCE = 0.05


@pytest.fixture
def wired(fake_source, make_task, clock):
    source = fake_source([make_task("A"), make_task("B", blocked_by=["A"])])
    store = BatchStore(source, ledger=RecentUpdateLedger(clock=clock))
    updates: list = []
    scheduler = RecomputeScheduler(store, debounce=DEBOUNCE, on_update=updates.append)
    yield source, store, scheduler, updates
    scheduler.close()


class TestImmediateTriggers:

    @pytest.mark.asyncio
    async def test_set_epic_runs_now(self, wired):
        source, store, scheduler, updates = wired
        result = await scheduler.set_epic("E1")
        assert result.ok
        assert store.epic_id == "E1"
        assert source.list_calls == 1
        assert [b.task_ids for b in updates[-1]] == [("A",), ("B",)]

    @pytest.mark.asyncio
    async def test_refresh_bypasses_pending_debounce(self, wired):
        source, store, scheduler, updates = wired
        store.epic_id = "E1"
        scheduler.notify_changed()
        assert scheduler.pending

        await scheduler.refresh()
        assert not scheduler.pending

        await asyncio.sleep(DEBOUNCE * 3)
        assert source.list_calls == 1
        assert scheduler.runs == 1


class TestDebounce:

    @pytest.mark.asyncio
    async def test_burst_collapses_to_one_run(self, wired):
        source, store, scheduler, updates = wired
        store.epic_id = "E1"
        for _ in range(5):
            scheduler.notify_changed()
            await asyncio.sleep(DEBOUNCE / 10)

        await asyncio.sleep(DEBOUNCE * 3)
        await scheduler.wait_idle()
        assert source.list_calls == 1
        assert len(updates) == 1

    @pytest.mark.asyncio
    async def test_does_not_run_before_delay(self, wired):
        source, store, scheduler, updates = wired
        scheduler.notify_changed()
        await asyncio.sleep(0)
        assert source.list_calls == 0
        assert scheduler.pending

    @pytest.mark.asyncio
    async def test_separate_bursts_run_separately(self, wired):
        source, store, scheduler, updates = wired
        scheduler.notify_changed()
        await asyncio.sleep(DEBOUNCE * 3)
        await scheduler.wait_idle()
        scheduler.notify_changed()
        await asyncio.sleep(DEBOUNCE * 3)
        await scheduler.wait_idle()
        assert source.list_calls == 2

    @pytest.mark.asyncio
    async def test_attached_source_notifications_are_debounced(self, wired):
        source, store, scheduler, updates = wired
        scheduler.attach(source)
        source.emit_change()
        source.emit_change()
        await asyncio.sleep(DEBOUNCE * 3)
        await scheduler.wait_idle()
        assert source.list_calls == 1

        scheduler.detach()
        source.emit_change()
        assert not scheduler.pending


class TestGuard:

    @pytest.mark.asyncio
    async def test_trigger_during_inflight_fetch_is_dropped(self, wired):
        source, store, scheduler, updates = wired
        source.gate = asyncio.Event()
        first = asyncio.ensure_future(scheduler.set_epic("E1"))
        await asyncio.sleep(0)

        dropped = await scheduler.refresh()
        assert dropped.skipped

        source.gate.set()
        await first
        assert source.list_calls == 1
        assert scheduler.runs == 1

    @pytest.mark.asyncio
    async def test_failed_fetch_emits_no_update(self, wired):
        source, store, scheduler, updates = wired
        source.fail_list = True
        result = await scheduler.set_epic("E1")
        assert not result.ok
        assert updates == []
        assert store.batches == []

    @pytest.mark.asyncio
    async def test_set_epic_unchanged_does_not_refetch(self, wired):
        source, store, scheduler, updates = wired
        await scheduler.set_epic("E1")
        again = await scheduler.set_epic("E1")
        assert again.ok and again.skipped
        assert source.list_calls == 1
        assert len(updates) == 1

        await scheduler.set_epic("E2")
        assert source.list_calls == 2


class TestDebouncedFailures:

    @pytest.mark.asyncio
    async def test_listener_error_is_logged(self, wired, monkeypatch):
        source, store, scheduler, updates = wired
        logged: list[str] = []
        monkeypatch.setattr(log, "error", logged.append)

        def _explode(batches):
            raise ValueError("listener broke")

        scheduler.on_update = _explode
        store.epic_id = "E1"
        scheduler.notify_changed()
        await asyncio.sleep(DEBOUNCE * 3)
        await scheduler.wait_idle()

        assert source.list_calls == 1
        assert any("listener broke" in msg for msg in logged)
