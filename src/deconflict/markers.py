"""Parse merge conflict markers into structured data."""

from __future__ import annotations

from dataclasses import dataclass

OURS_MARKER = "<<<<<<<"
BASE_MARKER = "|||||||"
SEPARATOR = "======="
THEIRS_MARKER = ">>>>>>>"


@dataclass
class ConflictRegion:
    """One conflicting hunk left in a file by merge-file."""

    ours_content: str
    theirs_content: str
    base_content: str | None
    ours_label: str
    theirs_label: str
    start_line: int


def has_conflict_markers(content: str) -> bool:
    """True if any line opens a conflict block."""
    return any(
        line.startswith(OURS_MARKER) for line in content.splitlines()
    )


def _find(lines: list[str], prefix: str, start: int, stop_at: str | None = None):
    for j in range(start, len(lines)):
        if lines[j].startswith(prefix):
            return j
        if stop_at and lines[j].startswith(stop_at):
            return None
    return None


def parse(content: str) -> list[ConflictRegion]:
    """Parse conflict blocks, in standard or diff3 form.

    Args:
        content: File content possibly containing markers

    Returns:
        One ConflictRegion per block, in file order

    Raises:
        ValueError: If a block is missing its separator or end marker
    """
    regions = []
    lines = content.splitlines(keepends=True)
    i = 0

    while i < len(lines):
        if not lines[i].startswith(OURS_MARKER):
            i += 1
            continue

        base_idx = _find(lines, BASE_MARKER, i + 1, stop_at=SEPARATOR)
        separator_idx = _find(lines, SEPARATOR, (base_idx or i) + 1)
        if separator_idx is None:
            raise ValueError(
                f"Malformed conflict at line {i + 1}: no separator found"
            )

        end_idx = _find(lines, THEIRS_MARKER, separator_idx + 1)
        if end_idx is None:
            raise ValueError(
                f"Malformed conflict at line {i + 1}: no end marker found"
            )

        ours_end = base_idx if base_idx is not None else separator_idx
        base_content = None
        if base_idx is not None:
            base_content = "".join(
                lines[base_idx + 1:separator_idx]
            ).rstrip('\n\r')

        regions.append(ConflictRegion(
            ours_content="".join(lines[i + 1:ours_end]).rstrip('\n\r'),
            theirs_content="".join(
                lines[separator_idx + 1:end_idx]
            ).rstrip('\n\r'),
            base_content=base_content,
            ours_label=lines[i][len(OURS_MARKER):].strip(),
            theirs_label=lines[end_idx][len(THEIRS_MARKER):].strip(),
            start_line=i + 1,
        ))
        i = end_idx + 1

    return regions
