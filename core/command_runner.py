"""Utilities for executing external tools with optional recording support."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence
import os
import shlex
import subprocess

SPAWN_FAILURE_EXIT_CODE = 127


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    streamed: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandError(RuntimeError):
    """Raised when a command exits non-zero or cannot be spawned."""

    def __init__(self, result: CommandResult, note: str | None = None):
        command = " ".join(shlex.quote(str(part)) for part in result.command)
        message = f"Command failed with exit code {result.returncode}: {command}"
        if note:
            message = f"{note}: {message}"
        if result.streamed:
            message = f"{message}\nstdout/stderr already streamed above."
        elif result.stdout or result.stderr:
            message = (
                f"{message}\n"
                f"stdout: {result.stdout}\n"
                f"stderr: {result.stderr}"
            )
        super().__init__(message)
        self.result = result
        self.note = note

    @property
    def returncode(self) -> int:
        return self.result.returncode


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str | os.PathLike[str]],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stream: bool = False,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str | os.PathLike[str]]) -> str:
        return " ".join(shlex.quote(str(part)) for part in command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`.

    Every call blocks until the child exits. A command whose executable
    cannot be spawned is reported as a failed result with exit code 127.
    """

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    @staticmethod
    def _finalize(result: CommandResult, *, check: bool, note: str | None) -> CommandResult:
        if check and result.returncode != 0:
            raise CommandError(result, note)
        return result

    def run(
        self,
        command: Sequence[str | os.PathLike[str]],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stream: bool = False,
    ) -> CommandResult:
        argv = [str(part) for part in command]
        merged_env = self._merge_environment(env)
        try:
            if not stream:
                process = subprocess.run(
                    argv,
                    cwd=str(cwd) if cwd else None,
                    env=merged_env,
                    capture_output=True,
                    text=True,
                    check=False,
                )
                result = CommandResult(
                    command=argv,
                    returncode=process.returncode,
                    stdout=process.stdout,
                    stderr=process.stderr,
                )
            else:
                process = subprocess.run(
                    argv,
                    cwd=str(cwd) if cwd else None,
                    env=merged_env,
                    check=False,
                )
                result = CommandResult(
                    command=argv,
                    returncode=process.returncode,
                    stdout="",
                    stderr="",
                    streamed=True,
                )
        except OSError as exc:
            result = CommandResult(
                command=argv,
                returncode=SPAWN_FAILURE_EXIT_CODE,
                stdout="",
                stderr=str(exc),
            )
        return self._finalize(result, check=check, note=note)


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]
    note: str | None
    stream: bool


@dataclass(slots=True)
class ScriptedResponse:
    """Canned output returned for commands starting with ``prefix``."""

    prefix: tuple[str, ...]
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them."""

    def __init__(self, responses: Iterable[ScriptedResponse] | None = None) -> None:
        self.commands: List[RecordedCommand] = []
        self.responses: List[ScriptedResponse] = list(responses or [])

    @staticmethod
    def _record_entry(
        *,
        command: Sequence[str | os.PathLike[str]],
        cwd: Path | None,
        env: Mapping[str, str] | None,
        note: str | None,
        stream: bool,
    ) -> RecordedCommand:
        return RecordedCommand(
            command=[str(part) for part in command],
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env else {},
            note=note,
            stream=stream,
        )

    def respond(self, *prefix: str, stdout: str = "", stderr: str = "", returncode: int = 0) -> None:
        self.responses.append(ScriptedResponse(tuple(prefix), stdout, stderr, returncode))

    def _match(self, argv: Sequence[str]) -> ScriptedResponse | None:
        for response in self.responses:
            size = len(response.prefix)
            if tuple(argv[:size]) == response.prefix:
                return response
        return None

    def run(
        self,
        command: Sequence[str | os.PathLike[str]],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stream: bool = False,
    ) -> CommandResult:
        entry = self._record_entry(command=command, cwd=cwd, env=env, note=note, stream=stream)
        self.commands.append(entry)
        response = self._match(entry.command)
        if response is None:
            return CommandResult(command=entry.command, returncode=0, stdout="", stderr="")
        result = CommandResult(
            command=entry.command,
            returncode=response.returncode,
            stdout=response.stdout,
            stderr=response.stderr,
        )
        if check and result.returncode != 0:
            raise CommandError(result, note)
        return result

    def iter_commands(self) -> Iterable[RecordedCommand]:
        return iter(self.commands)

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        default_cwd = str(workspace) if workspace else None
        for record in self.commands:
            cmd = self.format_command(record.command)
            cwd = record.cwd or default_cwd
            note = record.note
            parts: List[str] = ["[dry-run]"]
            if note:
                parts.append(note)
            if cwd:
                parts.append(f"(cwd={cwd})")
            parts.append(cmd)
            yield " ".join(parts)


__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SPAWN_FAILURE_EXIT_CODE",
    "ScriptedResponse",
    "SubprocessCommandRunner",
]
