"""Append-only Markdown log of reconciliation attempts."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from deconflict.core.log import logger

HEADER = "# Syncthing Merge Log\n\n---\n\n"

CLEAN_MERGE = "Clean Merge"
FAILED = "Failed"


def conflicts_marked(count: int) -> str:
    return f"Conflicts Marked ({count})"


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class AuditEntry:
    """One reconciliation attempt."""

    status: str
    file: str
    conflict: str
    base: str
    peer: str
    error: str | None = None
    timestamp: datetime = field(default_factory=_now)

    def render(self) -> str:
        stamp = self.timestamp.isoformat(timespec="milliseconds")
        lines = [
            f"## {stamp.replace('+00:00', 'Z')}",
            f"- **Status:** {self.status}",
            f"- **File:** `{self.file}`",
            f"- **Conflict:** `{self.conflict}`",
            f"- **Base:** `{self.base}`",
            f"- **Peer:** `{self.peer}`",
        ]
        if self.error:
            lines.append(f"- **Error:** {self.error}")
        return "\n".join(lines) + "\n\n---\n\n"


class AuditLog:
    """Markdown audit log, created on first append.

    Each entry is written with a single write() on a file opened for
    appending, under a lock, so concurrent pipelines never interleave
    partial entries. An empty path disables the log.
    """

    def __init__(self, path: Path | str | None):
        self.path = Path(path).expanduser().absolute() if path else None
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.path is not None

    def _ensure_header(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.path, "x", encoding="utf-8") as f:
                f.write(HEADER)
        except FileExistsError:
            pass

    def append(self, entry: AuditEntry) -> bool:
        """Append entry; failures are logged, never raised.

        Returns:
            True if the entry was written
        """
        if not self.enabled:
            return False

        try:
            with self._lock:
                self._ensure_header()
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(entry.render())
        except OSError as e:
            logger.warn("Failed to write merge log", error=str(e))
            return False
        return True
