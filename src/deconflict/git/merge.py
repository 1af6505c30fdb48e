"""Three-way merge of single files with `git merge-file`."""

from __future__ import annotations

import re
import shlex
from pathlib import Path

from deconflict.core.log import logger
from deconflict.core.runner import Runner

# Returned instead of an exit status when dry-run skipped the merge
NOT_EXECUTED = -1

# git merge-file truncates the conflict count to 127; anything above
# is a negative (error) status seen as unsigned
MAX_CONFLICTS = 127

# Shell diagnostics for exit 126/127 when the binary itself failed to run
NOT_RUNNABLE = re.compile(
    r"not found|no such file|permission denied|cannot execute", re.IGNORECASE
)


class MergeToolError(RuntimeError):
    """The merge tool could not be run or reported an error."""


class MergeToolUnavailable(MergeToolError):
    """The merge tool binary is missing or broken."""


class MergeTool:
    """Runs `<git> merge-file [--union] <current> <base> <theirs>`.

    current is rewritten in place. With the markers strategy the exit
    status is the number of conflicting regions left as markers; with
    --union both sides are kept and the status is always 0.
    """

    def __init__(
        self,
        binary: str = "git",
        union: bool = False,
        dry_run: bool = False,
        timeout: int | None = 60,
    ):
        self.binary = binary
        self.union = union
        self.dry_run = dry_run
        self.timeout = timeout

    def argv(self, current: Path, base: Path, theirs: Path) -> list[str]:
        flags = ["--union"] if self.union else []
        return [
            self.binary, "merge-file", *flags,
            str(current), str(base), str(theirs),
        ]

    def _run(self, argv: list[str]):
        try:
            return Runner().execute(argv, timeout=self.timeout, check=False)
        except OSError as e:
            raise MergeToolError(f"Could not launch {argv[0]}: {e}") from e

    def verify(self) -> str:
        """Check that the binary runs.

        Returns:
            The tool's version line

        Raises:
            MergeToolUnavailable: If it cannot be executed
        """
        try:
            result = self._run([self.binary, "--version"])
        except MergeToolError as e:
            raise MergeToolUnavailable(str(e)) from e
        if result.exited != 0:
            raise MergeToolUnavailable(
                f"{self.binary} not usable (exit {result.exited}): "
                f"{result.stderr.strip()}"
            )
        return result.stdout.strip()

    def merge(self, current: Path, base: Path, theirs: Path) -> int:
        """Merge theirs into current using base as common ancestor.

        Returns:
            0 for a clean merge, the number of conflicting regions
            otherwise, or NOT_EXECUTED in dry-run mode

        Raises:
            MergeToolError: If the tool is missing, timed out or
                failed
        """
        argv = self.argv(current, base, theirs)
        command = ' '.join(shlex.quote(part) for part in argv)

        if self.dry_run:
            logger.info("Would execute: {command}", command=command)
            return NOT_EXECUTED

        logger.info("Merging: {command}", command=command)
        result = self._run(argv)
        stderr = result.stderr.strip()

        if result.exited == -1:
            raise MergeToolError(f"{command} timed out")
        if result.exited in (126, 127) and NOT_RUNNABLE.search(stderr):
            raise MergeToolError(f"Could not run {self.binary}: {stderr}")
        if result.exited < 0 or result.exited > MAX_CONFLICTS:
            raise MergeToolError(
                f"{command} failed (exit {result.exited}): {stderr}"
            )
        return result.exited
