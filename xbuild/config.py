"""Per-application build configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
import os

import yaml

from core.config_loader import find_config_file, load_config_file

from .errors import ConfigError
from .toolchain import ToolSet

CONFIG_STEM = "xbuild"

DEFAULT_TARGET_SDK_VERSION = 33
DEFAULT_MIN_SDK_VERSION = 21
DEFAULT_IOS_MIN_VERSION = "9.0"
DEFAULT_R8_VERSION = "8.2.47"
DEFAULT_FLUTTER_BRANCH = "stable"

_ALLOWED_KEYS = {
    "cache_dir",
    "build_dir",
    "flutter_repo",
    "flutter_branch",
    "android_sdk",
    "target_sdk_version",
    "min_sdk_version",
    "ios_min_version",
    "r8_version",
    "android_jar_url",
    "tools",
}


def _optional_path(value: Any, key: str, base: Path) -> Path | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{key}' must be a non-empty string")
    path = Path(value.strip()).expanduser()
    return path if path.is_absolute() else (base / path).resolve()


def _int(value: Any, key: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer")
    return value


def _default_cache_dir() -> Path:
    env_value = os.environ.get("XBUILD_CACHE_DIR")
    if env_value:
        return Path(env_value).expanduser()
    return Path.home() / ".cache" / "x"


def _default_android_sdk() -> Path | None:
    for variable in ("ANDROID_HOME", "ANDROID_SDK_ROOT"):
        value = os.environ.get(variable)
        if value:
            return Path(value).expanduser()
    return None


@dataclass(slots=True)
class BuildConfig:
    cache_dir: Path
    build_dir: Path
    flutter_repo: Path | None = None
    flutter_branch: str = DEFAULT_FLUTTER_BRANCH
    android_sdk: Path | None = None
    target_sdk_version: int = DEFAULT_TARGET_SDK_VERSION
    min_sdk_version: int = DEFAULT_MIN_SDK_VERSION
    ios_min_version: str = DEFAULT_IOS_MIN_VERSION
    r8_version: str = DEFAULT_R8_VERSION
    android_jar_url: str | None = None
    tools: ToolSet = field(default_factory=ToolSet)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, root_dir: Path) -> "BuildConfig":
        section = data.get("build", data)
        if not isinstance(section, Mapping):
            raise ConfigError("'build' section must be a mapping")
        unknown = {str(key) for key in section.keys() if str(key) not in _ALLOWED_KEYS}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Build configuration contains unknown keys: {joined}")

        cache_dir = _optional_path(section.get("cache_dir"), "cache_dir", root_dir) or _default_cache_dir()
        build_dir = _optional_path(section.get("build_dir"), "build_dir", root_dir) or root_dir / "target" / "x"
        flutter_repo = _optional_path(section.get("flutter_repo"), "flutter_repo", root_dir)
        android_sdk = _optional_path(section.get("android_sdk"), "android_sdk", root_dir) or _default_android_sdk()

        tools_section = section.get("tools", {})
        if not isinstance(tools_section, Mapping):
            raise ConfigError("'tools' must be a mapping of tool name to path")
        try:
            tools = ToolSet.from_mapping(tools_section)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

        android_jar_url = section.get("android_jar_url")
        if android_jar_url is not None and not isinstance(android_jar_url, str):
            raise ConfigError("'android_jar_url' must be a string")

        return cls(
            cache_dir=cache_dir,
            build_dir=build_dir,
            flutter_repo=flutter_repo,
            flutter_branch=str(section.get("flutter_branch", DEFAULT_FLUTTER_BRANCH)),
            android_sdk=android_sdk,
            target_sdk_version=_int(section.get("target_sdk_version"), "target_sdk_version", DEFAULT_TARGET_SDK_VERSION),
            min_sdk_version=_int(section.get("min_sdk_version"), "min_sdk_version", DEFAULT_MIN_SDK_VERSION),
            ios_min_version=str(section.get("ios_min_version", DEFAULT_IOS_MIN_VERSION)),
            r8_version=str(section.get("r8_version", DEFAULT_R8_VERSION)),
            android_jar_url=android_jar_url,
            tools=tools,
        )

    @classmethod
    def load(cls, root_dir: Path) -> "BuildConfig":
        """Read ``xbuild.{toml,json,yaml,yml}`` from *root_dir*; defaults when absent."""
        try:
            path = find_config_file(root_dir, CONFIG_STEM)
            data = load_config_file(path) if path is not None else {}
        except (ValueError, TypeError, yaml.YAMLError) as exc:
            raise ConfigError(str(exc)) from exc
        return cls.from_mapping(data, root_dir=root_dir)


__all__ = ["BuildConfig", "CONFIG_STEM"]
