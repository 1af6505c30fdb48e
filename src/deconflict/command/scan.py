"""Scan command - reconcile existing conflicts once and exit."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel

from deconflict.command.startup import prepare

if TYPE_CHECKING:
    from deconflict.core.config import Settings


class ScanCommand(BaseModel):
    """Reconcile the conflict files present now, then exit."""

    async def run_workflow(self, settings: Settings) -> int:
        """Returns:
            Exit code (0=success, 1=merge tool unavailable)
        """
        reconciler = await prepare(settings)
        return 0 if reconciler is not None else 1
