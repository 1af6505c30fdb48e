"""Wrappers around git's file-level merge."""

from deconflict.git.merge import (
    NOT_EXECUTED,
    MergeTool,
    MergeToolError,
    MergeToolUnavailable,
)

__all__ = [
    "NOT_EXECUTED",
    "MergeTool",
    "MergeToolError",
    "MergeToolUnavailable",
]
