"""Configuration defaults, env vars, and runtime options for beadbatch."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


# Local status wins over a conflicting re-fetch for this long after a mutation.
DEFAULT_OVERRIDE_WINDOW = 2.0
# Change notifications arriving within this delay collapse into one recompute.
DEFAULT_DEBOUNCE_DELAY = 0.25
DEFAULT_POLL_INTERVAL = 1.0

COLLAPSED_STATE_FILE = "collapsed_batches.json"


@dataclass
class Config:
    """Runtime configuration for a scheduling session."""

    # Tracker
    project_path: str = ""
    bd_path: str = ""
    jsonl_path: str = ""

    # Timing (seconds)
    override_window: float = DEFAULT_OVERRIDE_WINDOW
    debounce_delay: float = DEFAULT_DEBOUNCE_DELAY
    poll_interval: float = DEFAULT_POLL_INTERVAL

    # UI state
    state_dir: str = ""

    # Misc
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.bd_path:
            self.bd_path = os.environ.get("BEADBATCH_BD_PATH") or "bd"
        if not self.state_dir:
            self.state_dir = os.environ.get("BEADBATCH_STATE_DIR") or str(
                Path.home() / ".beadbatch"
            )
        if not self.project_path:
            self.project_path = str(Path.cwd())
        if self.override_window < 0:
            raise ValueError("override_window must be non-negative")
        if self.debounce_delay < 0:
            raise ValueError("debounce_delay must be non-negative")

    @property
    def beads_dir(self) -> Path:
        return Path(self.project_path) / ".beads"

    @property
    def collapsed_state_file(self) -> Path:
        return Path(self.state_dir) / COLLAPSED_STATE_FILE
