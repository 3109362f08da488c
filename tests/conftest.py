"""Shared fixtures for beadbatch tests.

File handling in tests:
- Use tmp_path for any directory or file creation so tests are isolated and cleaned up.
- Use beadbatch.io_utils read_text/write_text for consistent UTF-8 I/O.
"""

from __future__ import annotations

import asyncio

import pytest

from beadbatch.errors import TransportError
from beadbatch.source import ListFilters, TaskSource, apply_filters
from beadbatch.tasks.model import Task, TaskStatus


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register opt-in switch for tests that need a real bd install."""
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run end-to-end tests marked with 'e2e'.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip e2e tests unless explicitly enabled."""
    if config.getoption("--run-e2e"):
        return

    skip_e2e = pytest.mark.skip(
        reason="E2E tests are skipped by default. Use --run-e2e to include them.",
    )
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


def _make_task(
    id: str,
    status: TaskStatus | str = TaskStatus.OPEN,
    blocked_by: list[str] | None = None,
    dependencies: list[str] | None = None,
    labels: list[str] | None = None,
    parent: str | None = "E1",
    issue_type: str = "task",
    title: str = "",
) -> Task:
    return Task(
        id=id,
        title=title or f"Task {id}",
        status=TaskStatus(status),
        issue_type=issue_type,
        labels=labels or [],
        parent=parent,
        blocked_by=blocked_by or [],
        dependencies=dependencies or [],
    )


@pytest.fixture
def make_task():
    """Factory fixture that creates Task instances (parent defaults to E1)."""
    return _make_task


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class FakeSource(TaskSource):
    """In-memory tracker. ``gate`` (when set) holds list_tasks until released."""

    name = "fake"

    def __init__(self, tasks: list[Task] | None = None) -> None:
        super().__init__()
        self.tasks: list[Task] = list(tasks or [])
        self.list_calls = 0
        self.update_calls: list[tuple[str, TaskStatus]] = []
        self.fail_list = False
        self.fail_update = False
        self.gate: asyncio.Event | None = None

    async def list_tasks(self, filters: ListFilters | None = None) -> list[Task]:
        self.list_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_list:
            raise TransportError("bd export: database is locked")
        return apply_filters(self.tasks, filters)

    async def update_status(self, task_id: str, status: TaskStatus) -> None:
        self.update_calls.append((task_id, status))
        if self.fail_update:
            raise TransportError(f"bd update: issue {task_id} not found")


@pytest.fixture
def fake_source():
    """Factory fixture that creates FakeSource instances."""
    return FakeSource
