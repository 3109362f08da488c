"""Task and Batch data models shared by the graph, grouping and reconciliation stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TaskStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DEFERRED = "deferred"
    CLOSED = "closed"


class BatchPhase(str, Enum):
    RED = "RED"
    GREEN = "GREEN"
    MIXED = "MIXED"


class BatchStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    BLOCKED = "blocked"
    COMPLETE = "complete"


@dataclass
class Task:
    """One tracker issue as seen in a single fetched snapshot.

    Snapshots are never edited in place; derive a new record with
    :func:`dataclasses.replace` instead.
    """

    id: str
    title: str = ""
    status: TaskStatus = TaskStatus.OPEN
    issue_type: str = "task"
    labels: list[str] = field(default_factory=list)
    parent: str | None = None
    blocked_by: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    priority: int = 2


@dataclass(frozen=True)
class Progress:
    completed: int
    total: int
    percentage: int


@dataclass(frozen=True)
class Batch:
    number: int
    phase: BatchPhase
    task_ids: tuple[str, ...]
    tasks: tuple[Task, ...]
    status: BatchStatus
    progress: Progress


@dataclass(frozen=True)
class PhaseProgress:
    completed: int = 0
    total: int = 0


@dataclass(frozen=True)
class BatchSummary:
    total_batches: int
    completed_batches: int
    active_batch_number: int | None
    phase_progress: dict[BatchPhase, PhaseProgress]
