"""Filesystem side of reconciliation: names, walking, cleanup."""

from deconflict.fs.ancestor import AncestorNotFound, find_ancestor
from deconflict.fs.classifier import (
    ConflictName,
    classify,
    is_temp_name,
    looks_like_conflict,
    parse_conflict_name,
)
from deconflict.fs.walker import absolute, walk_files

__all__ = [
    "AncestorNotFound",
    "ConflictName",
    "absolute",
    "classify",
    "find_ancestor",
    "is_temp_name",
    "looks_like_conflict",
    "parse_conflict_name",
    "walk_files",
]
