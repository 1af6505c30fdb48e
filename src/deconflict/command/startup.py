"""Steps shared by every command before conflicts are processed."""

from __future__ import annotations

from deconflict.core.config import Settings
from deconflict.core.log import logger
from deconflict.fs.sweeper import sweep_ghosts
from deconflict.fs.walker import absolute
from deconflict.git.merge import MergeToolUnavailable
from deconflict.pipeline import Reconciler
from deconflict.scanner import startup_scan


async def prepare(settings: Settings) -> Reconciler | None:
    """Verify the merge tool, sweep ghosts and drain the backlog.

    Returns:
        The Reconciler to keep using, or None if the merge tool is
        unavailable (the caller exits non-zero)
    """
    reconciler = Reconciler(settings)
    try:
        version = reconciler.deps.merge_tool.verify()
    except MergeToolUnavailable as e:
        logger.error("Merge tool unavailable: {error}", error=str(e))
        return None
    logger.debug("Using {version}", version=version)

    if settings.dry_run:
        logger.info("Dry run: no file will be changed")

    watch_root = absolute(settings.watch_path)
    sweep_ghosts(watch_root, settings.versions_dir, dry_run=settings.dry_run)
    await startup_scan(reconciler, watch_root)
    return reconciler
