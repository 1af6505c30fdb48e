"""One-off pass over conflicts that existed before the watcher started."""

from __future__ import annotations

from pathlib import Path

from deconflict.core.log import logger
from deconflict.fs.classifier import looks_like_conflict
from deconflict.fs.walker import walk_files
from deconflict.pipeline import Outcome, Reconciler, Status


def find_conflict_artifacts(root: Path, versions_dir: str) -> list[Path]:
    """Files under root whose names look like conflict files."""
    return list(walk_files(
        root, versions_dir, lambda path: looks_like_conflict(path.name)
    ))


async def startup_scan(reconciler: Reconciler, root: Path) -> list[Outcome]:
    """Run every pre-existing conflict through the pipeline in turn.

    Artifacts are handled one at a time, and callers start the live
    watcher only after this returns.
    """
    outcomes = []
    with logger.span("Startup scan of {root}", root=str(root)):
        artifacts = find_conflict_artifacts(
            root, reconciler.settings.versions_dir
        )
        for artifact in artifacts:
            outcomes.append(await reconciler.handle(artifact, startup=True))

    merged = sum(1 for o in outcomes if o.status == Status.MERGED)
    logger.info(
        "Startup scan complete", found=len(artifacts), merged=merged
    )
    return outcomes
