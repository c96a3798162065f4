"""Shared core utilities for build orchestration."""

from .archive import ArchiveConsole, ArchiveManager, EntryFilter, resolve_archive_format
from .command_runner import (
    CommandError,
    CommandResult,
    CommandRunner,
    RecordingCommandRunner,
    ScriptedResponse,
    SubprocessCommandRunner,
)
from .config_loader import (
    ConfigLoader,
    FILE_LOADERS,
    find_config_file,
    load_config_file,
)
from .console import Console, Progress

__all__ = [
    "ArchiveConsole",
    "ArchiveManager",
    "EntryFilter",
    "resolve_archive_format",
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "RecordingCommandRunner",
    "ScriptedResponse",
    "SubprocessCommandRunner",
    "ConfigLoader",
    "FILE_LOADERS",
    "find_config_file",
    "load_config_file",
    "Console",
    "Progress",
]
