"""
Shared fixtures: a scripted stand-in for ShellCommandRunner.

No test touches a real CLI tool or the real network.
"""

from typing import Callable, Optional, Union

import pytest

from device_hub.exceptions import CommandFailedError, CommandTimeoutError, ToolUnavailableError
from device_hub.utils.shell import CommandResult

Response = Union[CommandResult, Exception, Callable[[tuple], CommandResult]]


def ok(*args: str, stdout: str = "", stderr: str = "") -> CommandResult:
    return CommandResult(args=tuple(args), returncode=0, stdout=stdout, stderr=stderr)


def failed(*args: str, returncode: int = 1, stdout: str = "", stderr: str = "") -> CommandResult:
    return CommandResult(args=tuple(args), returncode=returncode, stdout=stdout, stderr=stderr)


def timed_out(*args: str) -> CommandResult:
    return CommandResult(args=tuple(args), returncode=None, timed_out=True)


class FakeRunner:
    """
    Replays scripted results for argument prefixes.

    The longest matching prefix wins. Unscripted commands behave as if the
    tool were missing.
    """

    def __init__(self, available: Optional[set[str]] = None):
        self.available = available or set()
        self.responses: dict[tuple[str, ...], Response] = {}
        self.calls: list[tuple[str, ...]] = []

    def script(self, *prefix: str, response: Response) -> None:
        self.responses[tuple(prefix)] = response

    def is_available(self, tool: str) -> bool:
        return tool in self.available

    async def run(self, *args: str, timeout: Optional[float] = None, check: bool = False) -> CommandResult:
        self.calls.append(tuple(args))

        match = None
        for prefix in self.responses:
            if args[: len(prefix)] == prefix and (match is None or len(prefix) > len(match)):
                match = prefix
        if match is None:
            raise ToolUnavailableError(args[0])

        response = self.responses[match]
        if isinstance(response, Exception):
            raise response
        result = response(tuple(args)) if callable(response) else response

        if check and result.timed_out:
            raise CommandTimeoutError(result.command, timeout or 0)
        if check and result.returncode != 0:
            raise CommandFailedError(result.command, result.returncode, result.stderr)
        return result

    def called(self, *prefix: str) -> bool:
        return any(call[: len(prefix)] == prefix for call in self.calls)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()
