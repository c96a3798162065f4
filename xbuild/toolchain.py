"""Locating external tools and invoking them through a command runner."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence
import os
import shutil

from core.command_runner import CommandError, CommandResult, CommandRunner

from .errors import ToolInvocationError, ToolNotFoundError
from .targets import Platform

KNOWN_TOOLS = frozenset({"git", "clang", "java", "sdkmanager", "lldb"})


def exe_name(name: str, host: Platform) -> str:
    return f"{name}.exe" if host is Platform.WINDOWS and not name.endswith(".exe") else name


def locate_tool(name: str, *, search_path: str | None = None) -> Path:
    """Resolve *name* on ``PATH`` (or *search_path*) without running it."""
    found = shutil.which(name, path=search_path)
    if found is None:
        raise ToolNotFoundError(name, search_path or os.environ.get("PATH"))
    return Path(found)


@dataclass(slots=True)
class ToolSet:
    """Explicit tool locations; anything not overridden is looked up on ``PATH``."""

    overrides: Dict[str, Path] = field(default_factory=dict)
    search_path: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ToolSet":
        unknown = {str(key) for key in data.keys() if str(key) not in KNOWN_TOOLS}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ValueError(f"Tool overrides contain unknown tools: {joined}")
        overrides: Dict[str, Path] = {}
        for key, value in data.items():
            if isinstance(value, str) and value.strip():
                overrides[str(key)] = Path(value.strip()).expanduser()
        return cls(overrides=overrides)

    def locate(self, name: str) -> Path:
        override = self.overrides.get(name)
        if override is not None:
            if not override.exists():
                raise ToolNotFoundError(name, str(override))
            return override
        return locate_tool(name, search_path=self.search_path)

    def command(self, name: str) -> str:
        """The override path when configured, otherwise the bare name for ``PATH`` lookup at spawn."""
        override = self.overrides.get(name)
        return str(override) if override is not None else name


def invoke(
    runner: CommandRunner,
    command: Sequence[str | os.PathLike[str]],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    note: str | None = None,
    verbose: bool = False,
) -> CommandResult:
    """Run *command* to completion, raising :class:`ToolInvocationError` on failure."""
    try:
        return runner.run(command, cwd=cwd, env=env, note=note, stream=verbose)
    except CommandError as exc:
        raise ToolInvocationError(str(exc), returncode=exc.returncode) from exc


__all__ = ["KNOWN_TOOLS", "ToolSet", "exe_name", "invoke", "locate_tool"]
