"""
One-shot execution of external command-line tools.

Every discovery strategy and controller goes through ShellCommandRunner so
that timeouts, missing tools and output decoding are handled in one place.
"""

import asyncio
import logging
import shlex
import shutil
from dataclasses import dataclass
from typing import Optional

from ..exceptions import CommandFailedError, CommandTimeoutError, ToolUnavailableError

logger = logging.getLogger("device_hub.utils.shell")


@dataclass
class CommandResult:
    """Captured outcome of a single process invocation."""

    args: tuple[str, ...]
    returncode: Optional[int]
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def command(self) -> str:
        return shlex.join(self.args)


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    """Kill a child process and reap it."""
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    await proc.wait()


class ShellCommandRunner:
    """
    Runs external tools with a timeout and captures their output.

    Processes are spawned without a shell; arguments are passed as-is.
    """

    def __init__(self, default_timeout: float = 10.0):
        self.default_timeout = default_timeout

    def is_available(self, tool: str) -> bool:
        """Check whether an executable is on PATH."""
        return shutil.which(tool) is not None

    async def run(
        self,
        *args: str,
        timeout: Optional[float] = None,
        check: bool = False,
    ) -> CommandResult:
        """
        Run a command and wait for it to finish.

        Args:
            *args: Program followed by its arguments
            timeout: Seconds before the process is killed (default_timeout if None)
            check: Raise on non-zero exit or timeout instead of returning

        Returns:
            CommandResult with decoded stdout/stderr

        Raises:
            ToolUnavailableError: The executable could not be found
            CommandTimeoutError: Timed out and check=True
            CommandFailedError: Non-zero exit and check=True
        """
        if not args:
            raise ValueError("No command given")

        timeout = self.default_timeout if timeout is None else timeout
        logger.debug("Running: %s (timeout=%.1fs)", shlex.join(args), timeout)

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise ToolUnavailableError(args[0]) from None

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.CancelledError:
            await _terminate(proc)
            logger.debug("Command cancelled: %s", shlex.join(args))
            raise
        except asyncio.TimeoutError:
            await _terminate(proc)
            logger.debug("Command timed out after %.1fs: %s", timeout, shlex.join(args))
            result = CommandResult(args=tuple(args), returncode=None, timed_out=True)
            if check:
                raise CommandTimeoutError(result.command, timeout)
            return result

        result = CommandResult(
            args=tuple(args),
            returncode=proc.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

        if result.returncode != 0:
            logger.debug(
                "Command exited with %s: %s (%s)",
                result.returncode,
                result.command,
                result.stderr.strip()[:200],
            )
            if check:
                raise CommandFailedError(result.command, result.returncode, result.stderr)

        return result
