"""Cross-platform build orchestrator for Flutter-style application bundles."""

from .download import DownloadManager, WorkItem
from .env import BuildEnv
from .errors import (
    ArchiveError,
    ConfigError,
    FetchError,
    MissingArtifactError,
    PlatformDetectionError,
    ToolInvocationError,
    ToolNotFoundError,
    UnsupportedCombinationError,
    VersionResolutionError,
    XBuildError,
)
from .flutter import Flutter
from .pipeline import BuildOutputs, Pipeline, plan_stages
from .targets import Arch, BuildTarget, CompileTarget, Opt, Platform

__all__ = [
    "DownloadManager",
    "WorkItem",
    "BuildEnv",
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
    "Flutter",
    "BuildOutputs",
    "Pipeline",
    "plan_stages",
    "Arch",
    "BuildTarget",
    "CompileTarget",
    "Opt",
    "Platform",
]
