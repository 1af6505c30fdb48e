"""Pre-merge backups with bounded retention."""

from __future__ import annotations

import re
import shutil
import time
from pathlib import Path

from deconflict.core.log import logger


def _backup_pattern(original: Path) -> re.Pattern[str]:
    return re.compile(rf'^{re.escape(original.name)}\.([0-9]+)\.bak$')


def backups_of(original: Path) -> list[Path]:
    """Existing backups of original, newest first."""
    pattern = _backup_pattern(original)
    found = []
    for path in original.parent.iterdir():
        match = pattern.match(path.name)
        if match:
            found.append((int(match.group(1)), path))
    return [path for _, path in sorted(found, reverse=True)]


def prune_backups(original: Path, keep: int) -> list[Path]:
    """Delete all but the newest keep backups (keep=0 keeps all)."""
    if keep <= 0:
        return []

    removed = []
    for stale in backups_of(original)[keep:]:
        try:
            stale.unlink()
        except OSError as e:
            logger.warn(
                "Could not prune backup {name}", name=stale.name, error=str(e)
            )
            continue
        removed.append(stale)
    return removed


def backup_file(original: Path, keep: int = 0) -> Path:
    """Copy original to <name>.<epoch ms>.bak next to it.

    Returns:
        Path of the new backup
    """
    backup = original.with_name(
        f"{original.name}.{int(time.time() * 1000)}.bak"
    )
    shutil.copy2(original, backup)
    logger.debug("Backed up {file}", file=original.name, backup=backup.name)
    prune_backups(original, keep)
    return backup
