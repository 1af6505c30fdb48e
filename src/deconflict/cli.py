#!/usr/bin/env python3
"""deconflict CLI - automatic three-way merging of Syncthing conflicts."""

import asyncio

from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from deconflict.command.scan import ScanCommand
from deconflict.command.watch import WatchCommand
from deconflict.core.config import Settings
from deconflict.core.log import logger


class CliState(Settings):
    """Resolve Syncthing conflict files by three-way merging them
    against the newest copy in the versions folder.

    Configuration sources (in priority order):
    1. Command-line arguments (--settle_delay 500)
    2. Environment variables (SETTLE_DELAY=500)
    3. .env file
    4. ./deconflict.yaml, the user config file, package defaults

    Without a subcommand, `watch` runs.
    """

    watch: CliSubCommand[WatchCommand]
    scan: CliSubCommand[ScanCommand]

    def cli_cmd(self):
        """Dispatch to the active subcommand."""
        subcommand = get_subcommand(self, is_required=False) or WatchCommand()

        # Closing the logger on exit flushes the file sink
        with logger:
            try:
                exit_code = asyncio.run(subcommand.run_workflow(self))
            except KeyboardInterrupt:
                exit_code = 0
        raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
