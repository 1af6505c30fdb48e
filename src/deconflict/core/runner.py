"""Command execution using invoke."""

import contextlib
import os
import shlex
from pathlib import Path

from invoke import Context, Result
from invoke.exceptions import CommandTimedOut

from deconflict.core.log import logger


class Runner(Context):
    """invoke.Context with an argv-style execute() method."""

    def kill(self) -> None:
        """Kill the running subprocess.

        invoke's kill() sends signal.SIGKILL, which does not exist on
        Windows. os.kill() there accepts the numeric value and hands it
        to TerminateProcess(), so use 9 directly.
        """
        import platform

        if platform.system() == "Windows":
            pid = self.pid if self.using_pty else self.process.pid
            with contextlib.suppress(ProcessLookupError):
                os.kill(pid, 9)
            return

        super().kill()

    def execute(
        self,
        argv: list[str],
        cwd: Path | None = None,
        timeout: int | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
    ) -> Result:
        """Run a command given as an argument list.

        Each argument is shell-quoted, so file names with spaces or
        shell metacharacters reach the program untouched.

        Args:
            argv: Program and arguments
            cwd: Working directory for command execution
            timeout: Maximum execution time in seconds
            check: If True, raise exception on non-zero exit code
            env: Environment variables to add to os.environ

        Returns:
            invoke.Result with stdout, stderr, exited (return code).
            A timeout is reported as exited == -1.

        Raises:
            invoke.UnexpectedExit: If check=True and command
                returns non-zero
        """
        command = ' '.join(shlex.quote(str(part)) for part in argv)
        kwargs = {
            "hide": True,
            "warn": not check,
            "in_stream": False,
        }
        if timeout:
            kwargs["timeout"] = timeout
        if env:
            kwargs["env"] = env

        logger.spew("Running command", command=command)
        try:
            if cwd:
                with self.cd(str(cwd)):
                    result = self.run(command, **kwargs)
            else:
                result = self.run(command, **kwargs)
        except CommandTimedOut as e:
            result = e.result
            result.exited = -1

        logger.spew(
            "Command finished", command=command, exited=result.exited
        )
        return result
