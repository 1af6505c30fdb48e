"""State, dependencies and results shared by the pipeline nodes."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from deconflict.audit import AuditLog
from deconflict.core.config import Settings
from deconflict.fs.classifier import ConflictName
from deconflict.git.merge import MergeTool


class Status(StrEnum):
    MERGED = "merged"
    DRY_RUN = "dry-run"
    SKIPPED = "skipped"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass(frozen=True)
class Outcome:
    """How one pipeline run ended."""

    status: Status
    reason: str = ""
    artifact: Path | None = None
    exit_code: int | None = None


class ProcessingSet:
    """Absolute paths currently inside the pipeline.

    claim() is an atomic check-and-add, so at most one pipeline run
    holds a given path at a time.
    """

    def __init__(self):
        self._paths: set[Path] = set()
        self._lock = threading.Lock()

    def claim(self, path: Path) -> bool:
        with self._lock:
            if path in self._paths:
                return False
            self._paths.add(path)
            return True

    def release(self, path: Path) -> None:
        with self._lock:
            self._paths.discard(path)

    def __contains__(self, path: Path) -> bool:
        with self._lock:
            return path in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)


class FileLocks:
    """asyncio locks keyed by logical file path.

    Entries exist only while some run holds or waits for them. Must be
    used from a single event loop.
    """

    def __init__(self):
        self._locks: dict[Path, asyncio.Lock] = {}
        self._users: dict[Path, int] = {}

    async def acquire(self, path: Path) -> None:
        lock = self._locks.setdefault(path, asyncio.Lock())
        self._users[path] = self._users.get(path, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._drop(path)
            raise

    def release(self, path: Path) -> None:
        self._locks[path].release()
        self._drop(path)

    def _drop(self, path: Path) -> None:
        self._users[path] -= 1
        if not self._users[path]:
            del self._users[path]
            del self._locks[path]

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class ReconcileState:
    """Mutable state of one artifact moving through the pipeline."""

    artifact: Path
    startup: bool = False
    conflict: ConflictName | None = None
    original: Path | None = None
    relative: str = ""
    ancestor: Path | None = None
    backup: Path | None = None
    exit_code: int | None = None
    locked: bool = False


@dataclass
class PipelineDeps:
    """Collaborators shared by every pipeline run."""

    settings: Settings
    merge_tool: MergeTool
    audit: AuditLog
    locks: FileLocks = field(default_factory=FileLocks)

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineDeps:
        return cls(
            settings=settings,
            merge_tool=MergeTool(
                binary=settings.git_bin,
                union=settings.use_union_merge,
                dry_run=settings.dry_run,
            ),
            audit=AuditLog(settings.merge_log_path),
        )
