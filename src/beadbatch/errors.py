"""Transport errors from the task tracker and the typed results that report them."""

from __future__ import annotations

from dataclasses import dataclass

NOT_INITIALIZED_PATTERNS: tuple[str, ...] = (
    "no .beads",
    "not initialized",
    "no beads database",
    "bd init",
)

NOT_FOUND_PATTERNS: tuple[str, ...] = (
    "not found",
    "no issue",
    "unknown issue",
)

MISSING_CLI_PATTERNS: tuple[str, ...] = (
    "command not found",
    "commandnotfoundexception",
    "enoent",
    "no such file or directory",
)


class TransportError(Exception):
    """A fetch or mutation call to the task tracker failed."""

    def __init__(self, message: str, *, kind: str = "") -> None:
        super().__init__(message)
        self.kind = kind or classify_transport_error(message)


@dataclass
class FetchResult:
    ok: bool = True
    skipped: bool = False
    error: str = ""
    task_count: int = 0


@dataclass
class MutationResult:
    ok: bool = True
    error: str = ""


def _contains_any(text: str, patterns: tuple[str, ...]) -> bool:
    lower = text.lower()
    return any(pattern in lower for pattern in patterns)


def classify_transport_error(text: str) -> str:
    """Label tracker stderr as ``missing_cli``, ``not_initialized``, ``not_found`` or ``unknown``."""
    if not text:
        return "unknown"
    # Checked first: "command not found" would otherwise match NOT_FOUND.
    if _contains_any(text, MISSING_CLI_PATTERNS):
        return "missing_cli"
    if _contains_any(text, NOT_INITIALIZED_PATTERNS):
        return "not_initialized"
    if _contains_any(text, NOT_FOUND_PATTERNS):
        return "not_found"
    return "unknown"
