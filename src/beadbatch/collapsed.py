"""Persisted set of collapsed batch numbers (display state only)."""

from __future__ import annotations

import json
from pathlib import Path

from beadbatch import log
from beadbatch.io_utils import read_text, write_text_atomic


class CollapsedBatches:
    """Read once at startup, written back on every toggle."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.numbers: set[int] = set()

    def __contains__(self, number: object) -> bool:
        return number in self.numbers

    def load(self) -> set[int]:
        self.numbers = set()
        if not self.path.exists():
            return self.numbers
        try:
            parsed = json.loads(read_text(self.path))
        except (OSError, json.JSONDecodeError) as exc:
            log.warn(f"Ignoring unreadable collapsed-batch state {self.path}: {exc}")
            return self.numbers
        if isinstance(parsed, list):
            self.numbers = {n for n in parsed if isinstance(n, int) and not isinstance(n, bool)}
        return self.numbers

    def save(self) -> None:
        try:
            write_text_atomic(self.path, json.dumps(sorted(self.numbers)))
        except OSError as exc:
            log.error(f"Failed to save collapsed batches: {exc}")

    def toggle(self, number: int) -> bool:
        """Flip *number*; return ``True`` when it is now collapsed."""
        if number in self.numbers:
            self.numbers.discard(number)
            collapsed = False
        else:
            self.numbers.add(number)
            collapsed = True
        self.save()
        return collapsed
