"""Error types raised by the build pipeline."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .command_runner import CommandResult


class BuildError(Exception):
    """Base class for every failure surfaced by :mod:`iosbuild`."""


class ConfigurationError(BuildError):
    """The supplied configuration is invalid or inconsistent."""


class ToolError(BuildError):
    """An external tool exited with a non-zero status or could not be launched."""

    def __init__(self, result: "CommandResult", message: str) -> None:
        super().__init__(message)
        self.result = result

    @property
    def returncode(self) -> int:
        return self.result.returncode

    @property
    def command(self) -> list[str]:
        return list(self.result.command)
