"""Locate the merge base for a conflicted file in the versions store.

Syncthing's staggered/simple versioning keeps old copies under

    <sync root>/<versions dir>/<same subpath>/<base>~<YYYYMMDD>-<HHMMSS>[.<ext>]

The newest copy is the best available common ancestor.
"""

from __future__ import annotations

import re
from pathlib import Path

from deconflict.fs.classifier import ConflictName
from deconflict.fs.walker import absolute, walk_files


class AncestorNotFound(LookupError):
    """No usable snapshot exists for a file."""


def snapshot_pattern(base_name: str, extension: str) -> re.Pattern[str]:
    """Regex for snapshot names of base_name/extension, taken literally."""
    pattern = rf'^{re.escape(base_name)}~([0-9]{{8}})-([0-9]{{6}})'
    if extension:
        pattern += rf'\.{re.escape(extension)}'
    return re.compile(pattern + '$')


def versions_folder(original: Path, sync_root: Path, versions_dir: str) -> Path:
    """Folder in the versions store mirroring the original's directory.

    Raises:
        AncestorNotFound: If original lies outside sync_root
    """
    root = absolute(sync_root)
    try:
        relative = absolute(original).relative_to(root)
    except ValueError as e:
        raise AncestorNotFound(
            f"{original} is outside sync root {root}"
        ) from e
    return root / versions_dir / relative.parent


def find_ancestor(
    original: Path,
    conflict: ConflictName,
    sync_root: Path,
    versions_dir: str,
) -> Path:
    """Return the most recent snapshot of original.

    The mirrored folder is searched recursively. Timestamps are fixed
    width, so the greatest file name is the newest snapshot.

    Raises:
        AncestorNotFound: If there is no versions folder for the file
            or no snapshot in it matches
    """
    folder = versions_folder(original, sync_root, versions_dir)
    if not folder.is_dir():
        raise AncestorNotFound(f"No {versions_dir} folder at {folder}")

    pattern = snapshot_pattern(conflict.base_name, conflict.extension)
    candidates = list(walk_files(
        folder, versions_dir, lambda path: bool(pattern.match(path.name))
    ))
    if not candidates:
        raise AncestorNotFound(
            f"No historical versions of {conflict.original_name} in {folder}"
        )

    return max(candidates, key=lambda path: (path.name, str(path)))
