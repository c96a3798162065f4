"""Locate and decode a single configuration mapping by file stem."""
from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, Mapping
import json
import tomllib

import yaml

ConfigLoader = Callable[[BinaryIO], Any]

FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": tomllib.load,
    ".json": json.load,
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
}
"""Suffix to decoder; every decoder reads a binary stream."""


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Decode *path*; an empty document yields an empty mapping."""
    loader = FILE_LOADERS.get(path.suffix.lower())
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS))
        raise ValueError(f"Unsupported configuration file extension '{path.suffix}'. Supported: {supported}")

    with path.open("rb") as handle:
        data = loader(handle)

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")
    return data


def find_config_file(directory: Path, stem: str) -> Path | None:
    """The single ``<stem>.<ext>`` file in *directory*, if any."""
    found = [directory / f"{stem}{suffix}" for suffix in FILE_LOADERS if (directory / f"{stem}{suffix}").is_file()]
    if len(found) > 1:
        names = "', '".join(path.name for path in found)
        raise ValueError(f"Multiple configuration files found for '{stem}': '{names}'. Keep only one.")
    return found[0] if found else None


__all__ = [
    "ConfigLoader",
    "FILE_LOADERS",
    "find_config_file",
    "load_config_file",
]
