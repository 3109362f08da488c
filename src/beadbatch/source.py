"""Task sources: where snapshots come from and where status changes go."""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from beadbatch import log
from beadbatch.errors import TransportError
from beadbatch.io_utils import read_text, write_text_atomic
from beadbatch.tasks.io import parse_jsonl
from beadbatch.tasks.model import Task, TaskStatus

ChangeCallback = Callable[[], None]
Unsubscribe = Callable[[], None]


@dataclass
class ListFilters:
    status: TaskStatus | None = None
    issue_type: str = ""
    parent: str = ""
    label: str = ""

    def matches(self, task: Task) -> bool:
        if self.status is not None and task.status != self.status:
            return False
        if self.issue_type and task.issue_type != self.issue_type:
            return False
        if self.parent and task.parent != self.parent:
            return False
        if self.label and self.label not in task.labels:
            return False
        return True


def apply_filters(tasks: Iterable[Task], filters: ListFilters | None) -> list[Task]:
    if filters is None:
        return list(tasks)
    return [t for t in tasks if filters.matches(t)]


class TaskSource(ABC):
    """Abstract tracker adapter. Subclasses implement fetch and status update."""

    name: str = "base"

    def __init__(self) -> None:
        self._listeners: list[ChangeCallback] = []

    @abstractmethod
    async def list_tasks(self, filters: ListFilters | None = None) -> list[Task]:
        """Return a full snapshot. Raises :class:`TransportError` on failure."""
        ...

    @abstractmethod
    async def update_status(self, task_id: str, status: TaskStatus) -> None:
        """Persist a status change. Raises :class:`TransportError` on failure."""
        ...

    def on_change(self, callback: ChangeCallback) -> Unsubscribe:
        """Register a callback fired when the underlying store may have changed."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def emit_change(self) -> None:
        for callback in list(self._listeners):
            callback()


class BeadsCliSource(TaskSource):
    """Talks to the ``bd`` CLI in a project directory."""

    name = "bd"

    def __init__(self, project_path: Path | str, bd_path: str = "bd") -> None:
        super().__init__()
        self.project_path = Path(project_path)
        self.bd_path = bd_path

    async def _exec(self, *args: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.bd_path,
                *args,
                cwd=self.project_path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise TransportError(f"{self.bd_path} not found", kind="missing_cli") from exc
        except OSError as exc:
            raise TransportError(str(exc)) from exc

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            first = message.splitlines()[0] if message else f"exit code {proc.returncode}"
            raise TransportError(f"bd {args[0]}: {first}")
        return stdout.decode("utf-8", errors="replace")

    async def list_tasks(self, filters: ListFilters | None = None) -> list[Task]:
        # One export call carries dependencies for every issue.
        output = await self._exec("export")
        return apply_filters(parse_jsonl(output), filters)

    async def update_status(self, task_id: str, status: TaskStatus) -> None:
        await self._exec("update", task_id, "--status", status.value)


class JsonlFileSource(TaskSource):
    """Reads (and rewrites) an exported ``issues.jsonl`` file directly."""

    name = "jsonl"

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path)

    def _read(self) -> str:
        try:
            return read_text(self.path)
        except OSError as exc:
            raise TransportError(f"cannot read {self.path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise TransportError(f"{self.path} is not valid UTF-8: {exc}") from exc

    async def list_tasks(self, filters: ListFilters | None = None) -> list[Task]:
        return apply_filters(parse_jsonl(self._read()), filters)

    async def update_status(self, task_id: str, status: TaskStatus) -> None:
        lines = self._read().splitlines()
        found = False
        out: list[str] = []
        for line in lines:
            if line.strip():
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    out.append(line)
                    continue
                if isinstance(record, dict) and record.get("id") == task_id:
                    record["status"] = status.value
                    line = json.dumps(record, ensure_ascii=False)
                    found = True
            out.append(line)
        if not found:
            raise TransportError(f"issue {task_id} not found", kind="not_found")
        try:
            write_text_atomic(self.path, "\n".join(out) + "\n")
        except OSError as exc:
            raise TransportError(f"cannot write {self.path}: {exc}") from exc
        log.debug(f"{self.path.name}: {task_id} -> {status.value}")
        self.emit_change()
