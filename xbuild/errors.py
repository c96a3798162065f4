"""Error taxonomy shared by every build stage."""
from __future__ import annotations

from pathlib import Path


class XBuildError(RuntimeError):
    """Base class for all build orchestration failures."""


class PlatformDetectionError(XBuildError):
    """The host operating system or architecture is not supported."""


class FetchError(XBuildError):
    """A download failed at the transport level or returned a non-success status."""

    def __init__(self, message: str, *, url: str, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class ArchiveError(XBuildError):
    """An archive was corrupt or contained an unexpected entry."""

    def __init__(self, message: str, *, archive: Path) -> None:
        super().__init__(message)
        self.archive = archive


class MissingArtifactError(XBuildError):
    """An expected file is absent after a step that should have produced it."""

    def __init__(self, path: Path, detail: str | None = None) -> None:
        message = f"failed to locate {path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.path = path


class ToolInvocationError(XBuildError):
    """An external tool exited non-zero or could not be spawned."""

    def __init__(self, message: str, *, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class ToolNotFoundError(ToolInvocationError):
    """An external tool could not be located."""

    def __init__(self, name: str, searched: str | None = None) -> None:
        message = f"unable to locate '{name}'"
        if searched:
            message = f"{message} (searched {searched})"
        super().__init__(message)
        self.name = name


class VersionResolutionError(XBuildError):
    """A version marker is missing or cannot be parsed."""


class UnsupportedCombinationError(XBuildError):
    """The requested target cannot be built from this host."""


class ConfigError(XBuildError):
    """Build configuration is malformed."""


__all__ = [
    "ArchiveError",
    "ConfigError",
    "FetchError",
    "MissingArtifactError",
    "PlatformDetectionError",
    "ToolInvocationError",
    "ToolNotFoundError",
    "UnsupportedCombinationError",
    "VersionResolutionError",
    "XBuildError",
]
