"""
Shared utilities.
"""

from .shell import CommandResult, ShellCommandRunner

__all__ = [
    "CommandResult",
    "ShellCommandRunner",
]
