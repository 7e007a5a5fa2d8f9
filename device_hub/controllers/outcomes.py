"""
Outcome classifiers for human-readable tool output.

Several tools report success only in their text output (and may exit 0 on
failure). The matching rules live here so they can be swapped per tool
version and tested on their own.
"""

import re
from typing import Protocol, runtime_checkable

from ..utils.shell import CommandResult


@runtime_checkable
class OutcomeClassifier(Protocol):
    """Decides whether a finished command achieved its goal."""

    def matches(self, result: CommandResult) -> bool:
        ...


class PatternClassifier:
    """Matches a regular expression against stdout (and optionally stderr)."""

    def __init__(self, pattern: str, flags: int = re.IGNORECASE | re.MULTILINE, include_stderr: bool = False):
        self.pattern = re.compile(pattern, flags)
        self.include_stderr = include_stderr

    def matches(self, result: CommandResult) -> bool:
        if result.timed_out:
            return False
        text = result.stdout
        if self.include_stderr:
            text = f"{text}\n{result.stderr}"
        return self.pattern.search(text) is not None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.pattern.pattern!r})"


class ExactOutputClassifier:
    """Matches when stripped stdout equals an expected token."""

    def __init__(self, expected: str):
        self.expected = expected

    def matches(self, result: CommandResult) -> bool:
        return result.ok and result.stdout.strip() == self.expected


# `adb connect`: "connected to host:port" / "already connected to host:port".
# "failed to connect" and "disconnected" must not match.
ADB_CONNECTED = PatternClassifier(r"^\s*(already\s+)?connected\b")

# `adb pair`: "Successfully paired to host:port [guid=...]"
ADB_PAIRED = PatternClassifier(r"successfully\s+paired")

# `dumpsys power`: "Display Power: state=ON"
DISPLAY_POWER_ON = PatternClassifier(r"Display Power:\s*state=ON\b", flags=re.MULTILINE)

# `blueutil --is-connected <addr>` prints 1 or 0
BLUEUTIL_CONNECTED = ExactOutputClassifier("1")

# `bluetoothctl info <addr>` contains "Connected: yes"
BLUETOOTHCTL_CONNECTED = PatternClassifier(r"^\s*Connected:\s*yes\b")
