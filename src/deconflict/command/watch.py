"""Watch command - the reconciliation daemon."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import TYPE_CHECKING

from pydantic import BaseModel

from deconflict.command.startup import prepare
from deconflict.core.log import logger
from deconflict.watch import Watcher

if TYPE_CHECKING:
    from deconflict.core.config import Settings


class WatchCommand(BaseModel):
    """Reconcile existing conflicts, then keep watching for new ones
    until interrupted (SIGINT/SIGTERM)."""

    async def run_workflow(self, settings: Settings) -> int:
        """Run until a termination signal arrives.

        Returns:
            Exit code (0=success, 1=merge tool unavailable)
        """
        reconciler = await prepare(settings)
        if reconciler is None:
            return 1

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Not supported by the Windows event loop; Ctrl+C still
            # raises KeyboardInterrupt there
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, stop.set)

        watcher = Watcher(
            settings.watch_path,
            reconciler,
            stability_threshold=settings.stability_threshold / 1000,
        )
        watcher.start()
        logger.info(
            "Watcher active on {root} (settle delay: {delay}ms)",
            root=str(watcher.root),
            delay=settings.settle_delay,
        )

        try:
            await stop.wait()
        finally:
            watcher.stop()
        return 0
