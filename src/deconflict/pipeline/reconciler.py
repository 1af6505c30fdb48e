"""Entry point into the pipeline with per-path mutual exclusion."""

from __future__ import annotations

import stat
from pathlib import Path

from deconflict.core.config import Settings
from deconflict.core.log import logger
from deconflict.fs.walker import absolute
from deconflict.pipeline.nodes import Validate, reconcile_graph
from deconflict.pipeline.state import (
    Outcome,
    PipelineDeps,
    ProcessingSet,
    ReconcileState,
    Status,
)


def _is_regular_file(path: Path) -> bool:
    try:
        return stat.S_ISREG(path.lstat().st_mode)
    except OSError:
        return False


class Reconciler:
    """Runs the reconciliation graph for one path at a time per path.

    The ProcessingSet is owned here and shared by every call, so a
    path reported twice while it is still being processed is only
    handled once. Runs for different conflict files of one logical
    file are serialized through the per-file locks in deps. Exceptions
    from a run end that run as failed and never escape to the caller.
    """

    def __init__(
        self,
        settings: Settings,
        deps: PipelineDeps | None = None,
        processing: ProcessingSet | None = None,
    ):
        self.settings = settings
        self.deps = deps or PipelineDeps.from_settings(settings)
        self.processing = processing if processing is not None else ProcessingSet()

    async def handle(self, path: Path | str, startup: bool = False) -> Outcome:
        """Reconcile one candidate path.

        Args:
            path: File reported by the watcher or startup scan
            startup: True during the startup scan, which skips the
                settle delay

        Returns:
            Outcome of the run
        """
        artifact = absolute(path)
        if artifact in self.processing:
            return Outcome(Status.IGNORED, "already processing", artifact)
        if not _is_regular_file(artifact):
            return Outcome(Status.IGNORED, "not a regular file", artifact)
        if not self.processing.claim(artifact):
            return Outcome(Status.IGNORED, "already processing", artifact)

        state = ReconcileState(artifact=artifact, startup=startup)
        try:
            result = await reconcile_graph.run(
                Validate(), state=state, deps=self.deps
            )
            return result.output
        except Exception as e:
            logger.error(
                "Failed {name}: {error}", name=artifact.name, error=str(e)
            )
            return Outcome(Status.FAILED, str(e), artifact)
        finally:
            if state.locked:
                self.deps.locks.release(state.original)
            self.processing.release(artifact)
