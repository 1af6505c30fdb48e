"""Recognize Syncthing conflict file names.

Syncthing names the losing side of a conflict

    <base>.sync-conflict-<YYYYMMDD>-<HHMMSS>-<PEERID>[.<ext>]

where PEERID is the first seven characters of the remote device ID.
Some clients write "%2F" instead of the dot before "sync-conflict".
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

CONFLICT_NAME = re.compile(
    r'^(.*?)(?:\.|%2F)sync-conflict-([0-9]{8})-([0-9]{6})-([A-Z0-9]{7})'
    r'\.?(.*)$',
    re.IGNORECASE,
)

# Cheap pre-filter used by the startup scan
CONFLICT_MARK = re.compile(
    r'sync-conflict-[0-9]{8}-[0-9]{6}-[A-Z0-9]{7}', re.IGNORECASE
)

TEMP_SUFFIX = ".tmp"


@dataclass(frozen=True)
class ConflictName:
    """Fields extracted from a conflict file name."""

    base_name: str
    extension: str
    date: str
    time: str
    peer: str

    @property
    def original_name(self) -> str:
        """Name of the file this conflict belongs to."""
        if self.extension:
            return f"{self.base_name}.{self.extension}"
        return self.base_name

    @property
    def timestamp(self) -> str:
        return f"{self.date}-{self.time}"


def is_temp_name(file_name: str) -> bool:
    return file_name.lower().endswith(TEMP_SUFFIX)


def looks_like_conflict(file_name: str) -> bool:
    return bool(CONFLICT_MARK.search(file_name)) and not is_temp_name(file_name)


def parse_conflict_name(file_name: str) -> ConflictName | None:
    """Split a conflict file name into its parts.

    Returns None when the name is not a conflict file, including
    in-progress temp files that otherwise match.
    """
    if is_temp_name(file_name):
        return None
    match = CONFLICT_NAME.match(file_name)
    if not match:
        return None

    base_name, date, time, peer, extension = match.groups()
    return ConflictName(
        base_name=base_name,
        extension=extension or "",
        date=date,
        time=time,
        peer=peer,
    )


def classify(
    file_name: str, allowed_extensions: Iterable[str]
) -> ConflictName | None:
    """Parse a conflict name and apply the extension allow-list.

    Text merging a binary file would corrupt it, so anything whose
    lower-cased extension is not allow-listed is rejected. A name
    without extension passes only if "" is in the allow-list.
    """
    conflict = parse_conflict_name(file_name)
    if conflict is None:
        return None
    if conflict.extension.lower() not in set(allowed_extensions):
        return None
    return conflict
