"""Command execution on top of invoke."""

import contextlib
import os
from pathlib import Path

from invoke import Context, Result
from invoke.exceptions import CommandTimedOut

from mergemend.core.log import logger


class Runner(Context):
    """invoke.Context with a single configurable execute() entry point."""

    def kill(self) -> None:
        """Kill the running subprocess.

        invoke's own kill() sends signal.SIGKILL, which does not exist
        on Windows. There os.kill() with a numeric code maps to
        TerminateProcess(), so 9 is used directly.
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
        command: str,
        cwd: Path | None = None,
        timeout: int | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
    ) -> Result:
        """Execute a command and capture its output.

        Args:
            command: Command string to execute
            cwd: Working directory for the command
            timeout: Maximum execution time in seconds
            check: If True, raise on non-zero exit code
            env: Extra environment variables (merged into os.environ)

        Returns:
            invoke.Result with stdout, stderr and exited. A timed out
            command is returned with exited == -1.

        Raises:
            invoke.UnexpectedExit: If check=True and the command fails
        """
        kwargs = {
            "hide": True,
            "warn": not check,
            "in_stream": False,
        }
        if timeout:
            kwargs["timeout"] = timeout
        if env:
            kwargs["env"] = env

        logger.spew(f"Running: {command}", cwd=str(cwd) if cwd else None)

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
            f"Finished: {command}",
            exit_code=result.exited,
            stdout_size=len(result.stdout),
        )
        return result
