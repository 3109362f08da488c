"""Epic scoping, batch grouping and batch classification."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from beadbatch.graph import assign_depths, build_dependency_graph
from beadbatch.tasks.model import (
    Batch,
    BatchPhase,
    BatchStatus,
    BatchSummary,
    PhaseProgress,
    Progress,
    Task,
    TaskStatus,
)

AGENT_LABEL_PREFIX = "agent:"
TEST_WRITER_LABEL = "agent:test-writer"
LEAF_ISSUE_TYPE = "task"


# ── scoping ──────────────────────────────────────────────────────────


def task_belongs_to_epic(task: Task, epic_id: str) -> bool:
    """Direct parent match, or the ``<epic>.<n>`` id convention for partial loads."""
    if task.parent == epic_id:
        return True
    return task.id.startswith(epic_id + ".")


def scope_tasks(tasks: Iterable[Task], epic_id: str) -> list[Task]:
    return [
        t for t in tasks
        if t.issue_type == LEAF_ISSUE_TYPE and task_belongs_to_epic(t, epic_id)
    ]


# ── classification ───────────────────────────────────────────────────


def _is_test_writer(task: Task) -> bool:
    return TEST_WRITER_LABEL in task.labels


def _is_implementer(task: Task) -> bool:
    return any(
        label.startswith(AGENT_LABEL_PREFIX) and label != TEST_WRITER_LABEL
        for label in task.labels
    )


def infer_phase(tasks: Sequence[Task]) -> BatchPhase:
    """RED for pure test-writing batches, GREEN for pure implementation, else MIXED."""
    if not tasks:
        return BatchPhase.MIXED
    writers = [_is_test_writer(t) for t in tasks]
    implementers = [_is_implementer(t) for t in tasks]
    if all(writers) and not any(implementers):
        return BatchPhase.RED
    if all(implementers) and not any(writers):
        return BatchPhase.GREEN
    return BatchPhase.MIXED


def compute_batch_status(tasks: Sequence[Task]) -> BatchStatus:
    """A single blocked member outranks in-progress ones."""
    if not tasks:
        return BatchStatus.WAITING
    statuses = [t.status for t in tasks]
    if all(s == TaskStatus.CLOSED for s in statuses):
        return BatchStatus.COMPLETE
    if any(s == TaskStatus.BLOCKED for s in statuses):
        return BatchStatus.BLOCKED
    if any(s == TaskStatus.IN_PROGRESS for s in statuses):
        return BatchStatus.ACTIVE
    return BatchStatus.WAITING


def compute_progress(tasks: Sequence[Task]) -> Progress:
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status == TaskStatus.CLOSED)
    # Round half up: 1/8 -> 13, not banker's 12.
    percentage = (200 * completed + total) // (2 * total) if total else 0
    return Progress(completed=completed, total=total, percentage=percentage)


# ── grouping ─────────────────────────────────────────────────────────


def group_into_batches(tasks: Sequence[Task], depths: Mapping[str, int]) -> list[Batch]:
    """Bucket tasks by depth; buckets are numbered 1..K in ascending depth order."""
    by_depth: dict[int, list[Task]] = {}
    for task in tasks:
        by_depth.setdefault(depths.get(task.id, 0), []).append(task)

    batches: list[Batch] = []
    for number, depth in enumerate(sorted(by_depth), start=1):
        members = by_depth[depth]
        batches.append(
            Batch(
                number=number,
                phase=infer_phase(members),
                task_ids=tuple(t.id for t in members),
                tasks=tuple(members),
                status=compute_batch_status(members),
                progress=compute_progress(members),
            )
        )
    return batches


def compute_batches(all_tasks: Iterable[Task], epic_id: str) -> list[Batch]:
    """Run the full pipeline for one epic: scope, graph, depths, batches."""
    scoped = scope_tasks(all_tasks, epic_id)
    if not scoped:
        return []
    graph = build_dependency_graph(scoped)
    result = assign_depths([t.id for t in scoped], graph)
    return group_into_batches(scoped, result.depths)


# ── read-only views ──────────────────────────────────────────────────


def get_batch_summary(batches: Sequence[Batch]) -> BatchSummary:
    active = next((b.number for b in batches if b.status != BatchStatus.COMPLETE), None)
    phase_progress: dict[BatchPhase, PhaseProgress] = {}
    for phase in (BatchPhase.RED, BatchPhase.GREEN):
        members = [b for b in batches if b.phase == phase]
        phase_progress[phase] = PhaseProgress(
            completed=sum(b.progress.completed for b in members),
            total=sum(b.progress.total for b in members),
        )
    return BatchSummary(
        total_batches=len(batches),
        completed_batches=sum(1 for b in batches if b.status == BatchStatus.COMPLETE),
        active_batch_number=active,
        phase_progress=phase_progress,
    )


def agent_label(task: Task) -> str | None:
    """Role suffix of the first ``agent:`` label, e.g. ``test-writer``."""
    for label in task.labels:
        if label.startswith(AGENT_LABEL_PREFIX):
            return label[len(AGENT_LABEL_PREFIX):]
    return None


def count_dependencies(task: Task) -> int:
    return max(len(task.blocked_by), len(task.dependencies))
