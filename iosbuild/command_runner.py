"""Utilities for executing external tools with optional dry-run support."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence
import shlex
import subprocess

from .errors import ToolError


REDACTED = "******"

_SPAWN_FAILURE_CODES = {
    FileNotFoundError: 127,
    PermissionError: 126,
}


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    streamed: bool = False
    redact: Sequence[str] = field(default_factory=tuple)


def format_command(command: Sequence[str], *, redact: Iterable[str] = ()) -> str:
    hidden = {value for value in redact if value}
    return " ".join(REDACTED if part in hidden else shlex.quote(part) for part in command)


def _failure_message(result: CommandResult) -> str:
    message = f"Command failed with exit code {result.returncode}: {format_command(result.command, redact=result.redact)}"
    if result.streamed:
        return f"{message}\nstdout/stderr already streamed above."
    return f"{message}\nstdout: {result.stdout}\nstderr: {result.stderr}"


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        check: bool = True,
        note: str | None = None,
        stream: bool = False,
        redact: Sequence[str] = (),
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str], *, redact: Iterable[str] = ()) -> str:
        return format_command(command, redact=redact)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`.

    ``stream=True`` lets the tool write straight to the inherited stdout and
    stderr; otherwise output is captured into the :class:`CommandResult`.
    A command that cannot be spawned is reported as a :class:`ToolError` with
    the conventional shell exit codes (127 not found, 126 not executable).
    The tool inherits the current environment unchanged.
    """

    def _finalize(self, result: CommandResult, *, check: bool) -> CommandResult:
        if check and result.returncode != 0:
            raise ToolError(result, _failure_message(result))
        return result

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        check: bool = True,
        note: str | None = None,
        stream: bool = False,
        redact: Sequence[str] = (),
    ) -> CommandResult:
        try:
            if stream:
                process = subprocess.run(
                    command,
                    cwd=str(cwd) if cwd else None,
                    check=False,
                )
            else:
                process = subprocess.run(
                    command,
                    cwd=str(cwd) if cwd else None,
                    capture_output=True,
                    text=True,
                    check=False,
                )
        except OSError as exc:
            result = CommandResult(
                command=list(command),
                returncode=_SPAWN_FAILURE_CODES.get(type(exc), 1),
                stdout="",
                stderr=str(exc),
                redact=tuple(redact),
            )
            raise ToolError(
                result,
                f"Unable to launch '{command[0]}': {exc.strerror or exc}",
            ) from exc

        if stream:
            result = CommandResult(
                command=list(command),
                returncode=process.returncode,
                stdout="",
                stderr="",
                streamed=True,
                redact=tuple(redact),
            )
        else:
            result = CommandResult(
                command=list(command),
                returncode=process.returncode,
                stdout=process.stdout,
                stderr=process.stderr,
                redact=tuple(redact),
            )
        return self._finalize(result, check=check)


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    note: str | None
    redact: tuple[str, ...] = ()


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them."""

    def __init__(self) -> None:
        self.commands: List[RecordedCommand] = []

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        check: bool = True,
        note: str | None = None,
        stream: bool = False,
        redact: Sequence[str] = (),
    ) -> CommandResult:
        self.commands.append(
            RecordedCommand(
                command=list(command),
                cwd=str(cwd) if cwd else None,
                note=note,
                redact=tuple(redact),
            )
        )
        return CommandResult(command=command, returncode=0, stdout="", stderr="")

    def iter_commands(self) -> Iterable[RecordedCommand]:
        return iter(self.commands)

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        default_cwd = str(workspace) if workspace else None
        for record in self.commands:
            cmd = self.format_command(record.command, redact=record.redact)
            cwd = record.cwd or default_cwd
            parts: List[str] = ["[dry-run]"]
            if record.note:
                parts.append(record.note)
            if cwd:
                parts.append(f"(cwd={cwd})")
            parts.append(cmd)
            yield " ".join(parts)
