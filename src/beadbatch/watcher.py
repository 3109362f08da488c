"""Poll the tracker's data directory and signal changes to a task source."""

from __future__ import annotations

import asyncio
from pathlib import Path

from beadbatch import log
from beadbatch.config import DEFAULT_POLL_INTERVAL
from beadbatch.source import TaskSource

Fingerprint = dict[str, tuple[int, int]]


def fingerprint(path: Path) -> Fingerprint:
    """(mtime_ns, size) per file directly under *path*, or of *path* itself."""
    if path.is_file():
        st = path.stat()
        return {path.name: (st.st_mtime_ns, st.st_size)}
    if not path.is_dir():
        return {}
    out: Fingerprint = {}
    for child in sorted(path.iterdir()):
        try:
            if child.is_file():
                st = child.stat()
                out[child.name] = (st.st_mtime_ns, st.st_size)
        except OSError:
            # Removed between iterdir and stat; the next poll sees it gone.
            continue
    return out


class DirectoryWatcher:
    """Calls ``source.emit_change()`` whenever the watched path changes."""

    def __init__(
        self,
        path: Path | str,
        source: TaskSource,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.path = Path(path)
        self.source = source
        self.interval = interval
        self._last: Fingerprint = {}
        self._stopped = asyncio.Event()

    def poll(self) -> bool:
        """Take one fingerprint; emit and return ``True`` when it differs."""
        try:
            current = fingerprint(self.path)
        except OSError as exc:
            log.warn(f"Cannot scan {self.path}: {exc}")
            return False
        if current == self._last:
            return False
        self._last = current
        log.debug(f"Change detected under {self.path}")
        self.source.emit_change()
        return True

    async def run(self) -> None:
        # Prime so the initial state does not count as a change.
        self._last = fingerprint(self.path)
        log.debug(f"Watching {self.path} every {self.interval}s")
        while not self._stopped.is_set():
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                self.poll()

    def stop(self) -> None:
        self._stopped.set()
