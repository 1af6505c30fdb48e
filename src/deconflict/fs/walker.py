"""Recursive file walker shared by the scanner, sweeper and resolver."""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Iterator
from pathlib import Path

from deconflict.core.log import logger

# Syncthing writes "~syncthing~<name>.tmp" on Windows and
# ".syncthing.<name>.tmp" elsewhere
SYNCTHING_TEMP = re.compile(r'^[.~]syncthing[.~].*\.tmp$', re.IGNORECASE)

SKIPPED_DIRS = frozenset({"node_modules"})


def absolute(path: Path | str) -> Path:
    """Absolute, normalized path without resolving symlinks."""
    return Path(os.path.abspath(os.fspath(path)))


def is_syncthing_temp(name: str) -> bool:
    return bool(SYNCTHING_TEMP.match(name))


def _skip_dir(name: str, versions_dir: str) -> bool:
    if name in SKIPPED_DIRS:
        return True
    return name.startswith('.') and name != versions_dir


def _visible_file(name: str) -> bool:
    """Hidden files are skipped, except Syncthing temp files."""
    if is_syncthing_temp(name):
        return True
    return not name.startswith(('.', '~'))


def walk_files(
    root: Path,
    versions_dir: str,
    predicate: Callable[[Path], bool] | None = None,
) -> Iterator[Path]:
    """Yield files under root, depth first, in name order.

    Hidden directories and node_modules are pruned, except the
    versions directory. Hidden files are skipped unless they are
    Syncthing temp files. Entries that vanish or cannot be read
    mid-walk are skipped.

    Args:
        root: Directory to walk (a missing root yields nothing)
        versions_dir: Name of the versions directory to keep walkable
        predicate: Optional filter applied to each candidate file

    Yields:
        Matching file paths
    """
    try:
        with os.scandir(root) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError as e:
        if root.exists():
            logger.debug("Cannot list directory", path=str(root), error=str(e))
        return

    for entry in entries:
        path = Path(entry.path)
        try:
            is_dir = entry.is_dir() and not entry.is_symlink()
        except OSError:
            continue

        if is_dir:
            if _skip_dir(entry.name, versions_dir):
                continue
            yield from walk_files(path, versions_dir, predicate)
        elif _visible_file(entry.name):
            if predicate is None or predicate(path):
                yield path
