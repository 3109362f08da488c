"""Decode tracker export records (``bd export`` JSONL) into :class:`Task` objects."""

from __future__ import annotations

import json
from typing import Any

from beadbatch import log
from beadbatch.tasks.model import Task, TaskStatus

# Dependency kinds that gate execution; the rest are informational links.
BLOCKING_DEP_TYPES: tuple[str, ...] = ("blocks", "conditional-blocks")
PARENT_DEP_TYPE = "parent-child"


def parse_status(raw: object) -> TaskStatus:
    try:
        return TaskStatus(str(raw).strip().lower().replace("-", "_"))
    except ValueError:
        log.debug(f"Unknown status {raw!r}, treating as open")
        return TaskStatus.OPEN


def _str_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v]


def _dependency_ids(record: dict[str, Any], task_id: str) -> tuple[list[str], str | None]:
    """Return (blocking ids, parent id) from a record's ``dependencies`` list.

    Entries are either full issue objects (``{"id": ...}``) or dependency
    edges (``{"issue_id", "depends_on_id", "type"}``).
    """
    ids: list[str] = []
    parent: str | None = None
    for dep in record.get("dependencies") or []:
        if isinstance(dep, str):
            ids.append(dep)
            continue
        if not isinstance(dep, dict):
            continue
        dep_type = dep.get("type") or dep.get("dependency_type") or ""
        target = dep.get("depends_on_id") or dep.get("id")
        if not target or target == task_id:
            continue
        if dep_type == PARENT_DEP_TYPE:
            parent = parent or str(target)
            continue
        if dep_type and dep_type not in BLOCKING_DEP_TYPES:
            continue
        ids.append(str(target))
    return ids, parent


def task_from_dict(record: dict[str, Any]) -> Task:
    """Build a Task from one decoded export record. Raises ``KeyError`` without an id."""
    task_id = str(record["id"])
    dep_ids, dep_parent = _dependency_ids(record, task_id)
    priority = record.get("priority", 2)
    return Task(
        id=task_id,
        title=str(record.get("title") or ""),
        status=parse_status(record.get("status", "open")),
        issue_type=str(record.get("issue_type") or record.get("type") or "task"),
        labels=_str_list(record.get("labels")),
        parent=record.get("parent") or dep_parent,
        blocked_by=_str_list(record.get("blockedBy") or record.get("blocked_by")),
        dependencies=dep_ids,
        priority=priority if isinstance(priority, int) else 2,
    )


def task_to_dict(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "status": task.status.value,
        "issue_type": task.issue_type,
        "labels": list(task.labels),
        "parent": task.parent,
        "blocked_by": list(task.blocked_by),
        "dependencies": list(task.dependencies),
        "priority": task.priority,
    }


def parse_jsonl(text: str) -> list[Task]:
    """Parse JSONL export output, skipping blank and malformed lines."""
    tasks: list[Task] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
            tasks.append(task_from_dict(record))
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as exc:
            log.debug(f"Skipping malformed export line {lineno}: {exc}")
    return tasks
