"""CLI command modules for deconflict."""

from deconflict.command.scan import ScanCommand
from deconflict.command.watch import WatchCommand

__all__ = ["ScanCommand", "WatchCommand"]
