"""Remove temp files Syncthing leaves behind after conflicts."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

from deconflict.core.log import logger
from deconflict.fs.walker import walk_files

# Name variants Syncthing uses for the temp copy of <name>
TEMP_VARIANTS = ("~syncthing~{name}.tmp", ".syncthing.{name}.tmp")

GHOST = re.compile(r'^[.~]syncthing[.~].*sync-conflict.*\.tmp$', re.IGNORECASE)


def temp_paths(artifact: Path) -> list[Path]:
    """Temp file names Syncthing may have used while writing artifact."""
    return [
        artifact.with_name(variant.format(name=artifact.name))
        for variant in TEMP_VARIANTS
    ]


def _remove(path: Path, dry_run: bool, what: str) -> bool:
    """Delete path, warning instead of raising when it is locked."""
    try:
        if not dry_run:
            path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warn(
            "Could not remove {name} (likely still locked by Syncthing)",
            name=path.name,
            error=str(e),
        )
        return False
    if dry_run:
        logger.info(f"Would remove {what}: {{name}}", name=path.name)
    else:
        logger.info(f"Removed {what}: {{name}}", name=path.name)
    return True


async def remove_temp_files(
    artifact: Path, grace: float = 0.5, dry_run: bool = False
) -> list[Path]:
    """Remove the temp files belonging to one conflict file.

    Waits grace seconds first so Syncthing can release its handle.

    Returns:
        Temp files that were removed
    """
    if grace:
        await asyncio.sleep(grace)

    removed = []
    for temp in temp_paths(artifact):
        if temp.exists() and _remove(temp, dry_run, "temp file"):
            removed.append(temp)
    return removed


def sweep_ghosts(
    root: Path, versions_dir: str, dry_run: bool = False
) -> list[Path]:
    """Remove every leftover conflict temp file under root.

    Run once at startup; these are left by interrupted transfers and
    are unrelated to any conflict still pending.
    """
    logger.info("Scanning for leftover conflict temp files", root=str(root))
    removed = []
    for ghost in walk_files(
        root, versions_dir, lambda path: bool(GHOST.match(path.name))
    ):
        if _remove(ghost, dry_run, "ghost"):
            removed.append(ghost)
    return removed
