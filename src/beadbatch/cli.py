"""beadbatch CLI — show an epic's tasks as dependency-ordered batches.

Installed as ``beadbatch`` console_script.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click
from rich.table import Table

from beadbatch import __version__
from beadbatch import log
from beadbatch.batches import agent_label, count_dependencies, get_batch_summary
from beadbatch.collapsed import CollapsedBatches
from beadbatch.config import Config
from beadbatch.recompute import RecomputeScheduler
from beadbatch.reconcile import RecentUpdateLedger
from beadbatch.source import BeadsCliSource, JsonlFileSource, TaskSource
from beadbatch.store import BatchStore
from beadbatch.tasks.io import task_to_dict
from beadbatch.tasks.model import Batch, BatchPhase, BatchStatus, TaskStatus
from beadbatch.watcher import DirectoryWatcher

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

_PHASE_STYLE = {
    BatchPhase.RED: "red",
    BatchPhase.GREEN: "green",
    BatchPhase.MIXED: "yellow",
}

_STATUS_STYLE = {
    BatchStatus.COMPLETE: "green",
    BatchStatus.ACTIVE: "cyan",
    BatchStatus.BLOCKED: "red",
    BatchStatus.WAITING: "dim",
}


# ── helpers ──────────────────────────────────────────────────────────


def _make_source(cfg: Config) -> TaskSource:
    if cfg.jsonl_path:
        return JsonlFileSource(cfg.jsonl_path)
    return BeadsCliSource(cfg.project_path, bd_path=cfg.bd_path)


def _make_store(cfg: Config, epic_id: str | None = None) -> BatchStore:
    store = BatchStore(_make_source(cfg), ledger=RecentUpdateLedger(window=cfg.override_window))
    store.epic_id = epic_id
    return store


def _load_or_exit(store: BatchStore) -> None:
    result = asyncio.run(store.fetch())
    if not result.ok:
        sys.exit(1)


def _batch_to_dict(batch: Batch) -> dict[str, object]:
    return {
        "number": batch.number,
        "phase": batch.phase.value,
        "status": batch.status.value,
        "task_ids": list(batch.task_ids),
        "tasks": [task_to_dict(t) for t in batch.tasks],
        "progress": {
            "completed": batch.progress.completed,
            "total": batch.progress.total,
            "percentage": batch.progress.percentage,
        },
    }


def _render_batches(batches: list[Batch], collapsed: CollapsedBatches | None = None) -> None:
    if not batches:
        log.warn("No tasks found for this epic.")
        return

    for batch in batches:
        phase = f"[{_PHASE_STYLE[batch.phase]}]{batch.phase.value}[/]"
        status = f"[{_STATUS_STYLE[batch.status]}]{batch.status.value}[/]"
        p = batch.progress
        log.console.print(
            f"[bold]Batch {batch.number}[/bold] {phase} {status} "
            f"{p.completed}/{p.total} ({p.percentage}%)"
        )
        if collapsed is not None and batch.number in collapsed:
            log.console.print("  [dim](collapsed)[/dim]")
            continue

        table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Status")
        table.add_column("Agent")
        table.add_column("Deps", justify="right")
        table.add_column("Title")
        for task in batch.tasks:
            table.add_row(
                task.id,
                task.status.value,
                agent_label(task) or "-",
                str(count_dependencies(task)),
                task.title,
            )
        log.console.print(table)


def _render_summary(batches: list[Batch]) -> None:
    summary = get_batch_summary(batches)
    active = summary.active_batch_number
    log.console.print(
        f"Batches: {summary.completed_batches}/{summary.total_batches} complete"
        + (f", active: {active}" if active is not None else "")
    )
    for phase, progress in summary.phase_progress.items():
        if progress.total:
            log.console.print(
                f"  [{_PHASE_STYLE[phase]}]{phase.value}[/]: "
                f"{progress.completed}/{progress.total}"
            )


# ── commands ─────────────────────────────────────────────────────────


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("--project", "project_path", default="", help="Project directory containing .beads/")
@click.option("--bd", "bd_path", default="", help="Path to the bd CLI")
@click.option("--jsonl", "jsonl_path", default="", help="Read an issues.jsonl export instead of calling bd")
@click.option("--state-dir", default="", help="Directory for local display state")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="beadbatch")
@click.pass_context
def main(
    ctx: click.Context,
    project_path: str,
    bd_path: str,
    jsonl_path: str,
    state_dir: str,
    verbose: bool,
) -> None:
    """beadbatch — dependency-ordered execution batches for beads epics.

    \b
    EXAMPLES:
      beadbatch batches bd-a3f8              # Show batches for an epic
      beadbatch --jsonl .beads/issues.jsonl summary bd-a3f8
      beadbatch watch bd-a3f8                # Re-render on tracker changes
      beadbatch set-status bd-a3f8.2 in_progress
    """
    cfg = Config(
        project_path=project_path,
        bd_path=bd_path,
        jsonl_path=jsonl_path,
        state_dir=state_dir,
        verbose=verbose,
    )
    log.set_verbose(verbose)
    ctx.obj = cfg


@main.command()
@click.argument("epic_id")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON instead of a table")
@click.pass_obj
def batches(cfg: Config, epic_id: str, as_json: bool) -> None:
    """Show the execution batches of EPIC_ID."""
    store = _make_store(cfg, epic_id)
    _load_or_exit(store)
    if as_json:
        click.echo(json.dumps([_batch_to_dict(b) for b in store.batches], indent=2))
        return
    collapsed = CollapsedBatches(cfg.collapsed_state_file)
    collapsed.load()
    _render_batches(store.batches, collapsed)


@main.command()
@click.argument("epic_id")
@click.pass_obj
def summary(cfg: Config, epic_id: str) -> None:
    """Aggregate progress across the batches of EPIC_ID."""
    store = _make_store(cfg, epic_id)
    _load_or_exit(store)
    _render_summary(store.batches)


@main.command("set-status")
@click.argument("task_id")
@click.argument("status", type=click.Choice([s.value for s in TaskStatus]))
@click.pass_obj
def set_status(cfg: Config, task_id: str, status: str) -> None:
    """Change the status of TASK_ID."""

    async def _apply() -> bool:
        store = _make_store(cfg)
        loaded = await store.fetch()
        if not loaded.ok:
            return False
        result = await store.set_status(task_id, TaskStatus(status))
        if not result.ok:
            log.error(result.error)
        return result.ok

    if not asyncio.run(_apply()):
        sys.exit(1)
    log.success(f"{task_id} -> {status}")


@main.command()
@click.argument("number", type=click.IntRange(min=1))
@click.pass_obj
def collapse(cfg: Config, number: int) -> None:
    """Toggle whether batch NUMBER is shown collapsed."""
    state = CollapsedBatches(cfg.collapsed_state_file)
    state.load()
    if state.toggle(number):
        log.info(f"Batch {number} collapsed")
    else:
        log.info(f"Batch {number} expanded")


@main.command()
@click.argument("epic_id")
@click.option("--interval", type=float, default=None, help="Seconds between change polls")
@click.pass_obj
def watch(cfg: Config, epic_id: str, interval: float | None) -> None:
    """Re-render EPIC_ID's batches whenever the tracker data changes."""
    if interval is not None:
        cfg.poll_interval = interval
    try:
        asyncio.run(_watch(cfg, epic_id))
    except KeyboardInterrupt:
        log.info("Stopped watching.")


async def _watch(cfg: Config, epic_id: str) -> None:
    store = _make_store(cfg)
    collapsed = CollapsedBatches(cfg.collapsed_state_file)
    collapsed.load()

    def _on_update(batches: list[Batch]) -> None:
        log.console.rule(f"[bold]{epic_id}[/bold]")
        _render_batches(batches, collapsed)
        _render_summary(batches)

    scheduler = RecomputeScheduler(store, debounce=cfg.debounce_delay, on_update=_on_update)
    scheduler.attach(store.source)
    watched = Path(cfg.jsonl_path) if cfg.jsonl_path else cfg.beads_dir
    watcher = DirectoryWatcher(watched, store.source, interval=cfg.poll_interval)

    await scheduler.set_epic(epic_id)
    try:
        await watcher.run()
    finally:
        watcher.stop()
        scheduler.close()
        store.close()
