"""Platform, architecture and optimization level value types."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Sequence
import platform as _platform
import sys

from .errors import PlatformDetectionError


class Platform(str, Enum):
    LINUX = "linux"
    WINDOWS = "windows"
    MACOS = "macos"
    ANDROID = "android"
    IOS = "ios"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def host(cls) -> "Platform":
        name = sys.platform
        if name.startswith("linux"):
            return cls.LINUX
        if name in {"win32", "cygwin"}:
            return cls.WINDOWS
        if name == "darwin":
            return cls.MACOS
        raise PlatformDetectionError(f"unsupported host platform '{name}'")

    @property
    def is_apple(self) -> bool:
        return self in (Platform.MACOS, Platform.IOS)

    @property
    def is_elf(self) -> bool:
        return self in (Platform.ANDROID, Platform.LINUX, Platform.WINDOWS)


_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "arm64": "arm64",
    "aarch64": "arm64",
}


class Arch(str, Enum):
    X64 = "x64"
    ARM64 = "arm64"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def host(cls) -> "Arch":
        machine = _platform.machine()
        normalized = _ARCH_ALIASES.get(machine.lower())
        if normalized is None:
            raise PlatformDetectionError(f"unsupported host architecture '{machine}'")
        return cls(normalized)

    @property
    def apple_name(self) -> str:
        """Name understood by ``clang -arch``."""
        return "x86_64" if self is Arch.X64 else "arm64"


class Opt(str, Enum):
    DEBUG = "debug"
    RELEASE = "release"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class CompileTarget:
    platform: Platform
    arch: Arch
    opt: Opt

    def __str__(self) -> str:
        return f"{self.platform}-{self.arch}-{self.opt}"


@dataclass(frozen=True, slots=True)
class BuildTarget:
    """The platform and optimization level selected for a build, with one or more archs."""

    platform: Platform
    opt: Opt
    archs: tuple[Arch, ...] = field(default=())

    def __post_init__(self) -> None:
        if not self.archs:
            raise ValueError("BuildTarget requires at least one architecture")

    @classmethod
    def create(cls, platform: Platform, opt: Opt, archs: Sequence[Arch]) -> "BuildTarget":
        unique: list[Arch] = []
        for arch in archs:
            if arch not in unique:
                unique.append(arch)
        return cls(platform=platform, opt=opt, archs=tuple(unique))

    def compile_targets(self) -> Iterator[CompileTarget]:
        for arch in self.archs:
            yield CompileTarget(self.platform, arch, self.opt)


__all__ = ["Arch", "BuildTarget", "CompileTarget", "Opt", "Platform"]
