"""Live filesystem watching with watchdog."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from deconflict.core.log import logger
from deconflict.fs.walker import SKIPPED_DIRS, absolute
from deconflict.pipeline import Reconciler


def is_ignored(path: Path, root: Path) -> bool:
    """Hidden paths and dependency caches below root are not watched."""
    try:
        parts = path.relative_to(root).parts
    except ValueError:
        return True
    return any(part.startswith('.') or part in SKIPPED_DIRS for part in parts)


def _size(path: Path) -> int | None:
    try:
        return path.stat().st_size
    except OSError:
        return None


class StabilityGate:
    """Hands a path on once it stopped changing for threshold seconds.

    Every event for a path re-arms its timer. When the timer fires the
    size is compared with the size seen at arming time; a change
    re-arms again, a vanished file is dropped.
    """

    def __init__(self, threshold: float, on_stable: Callable[[Path], None]):
        self.threshold = threshold
        self._on_stable = on_stable
        self._loop = asyncio.get_running_loop()
        self._timers: dict[Path, asyncio.TimerHandle] = {}
        self._sizes: dict[Path, int | None] = {}

    def touch(self, path: Path) -> None:
        pending = self._timers.pop(path, None)
        if pending:
            pending.cancel()
        self._sizes[path] = _size(path)
        self._timers[path] = self._loop.call_later(
            self.threshold, self._check, path
        )

    def _check(self, path: Path) -> None:
        self._timers.pop(path, None)
        size = _size(path)
        if size is None:
            self._sizes.pop(path, None)
            return
        if size != self._sizes.get(path):
            self.touch(path)
            return
        self._sizes.pop(path, None)
        self._on_stable(path)

    def pending(self) -> int:
        return len(self._timers)

    def cancel_all(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._sizes.clear()


class ConflictEventHandler(FileSystemEventHandler):
    """Forwards file add/change events from the observer thread to
    the event loop."""

    def __init__(
        self,
        root: Path,
        loop: asyncio.AbstractEventLoop,
        callback: Callable[[Path], None],
    ):
        self.root = root
        self._loop = loop
        self._callback = callback

    def _forward(self, raw_path) -> None:
        path = absolute(os.fsdecode(raw_path))
        if is_ignored(path, self.root):
            return
        self._loop.call_soon_threadsafe(self._callback, path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Syncthing writes a temp file and renames it into place
        if not event.is_directory:
            self._forward(event.dest_path)


class Watcher:
    """Feeds stable file events into the Reconciler.

    start() and stop() must be called from the running event loop.
    Each stable path becomes its own task, so unrelated files are
    processed concurrently.
    """

    def __init__(
        self, root: Path, reconciler: Reconciler, stability_threshold: float
    ):
        self.root = absolute(root)
        self.reconciler = reconciler
        self.stability_threshold = stability_threshold
        self._observer = None
        self._gate: StabilityGate | None = None
        self._tasks: set[asyncio.Task] = set()

    def _dispatch(self, path: Path) -> None:
        task = asyncio.create_task(self.reconciler.handle(path))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._gate = StabilityGate(self.stability_threshold, self._dispatch)
        handler = ConflictEventHandler(self.root, loop, self._gate.touch)

        self._observer = Observer()
        self._observer.schedule(handler, str(self.root), recursive=True)
        self._observer.start()
        logger.debug("Observer started", root=str(self.root))

    def stop(self) -> None:
        """Stop the observer. In-flight pipeline tasks are not awaited."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=10)
            self._observer = None
        if self._gate is not None:
            self._gate.cancel_all()
        logger.info("Watcher stopped", in_flight=len(self._tasks))
