"""Host machine queries isolated behind a per-OS provider."""
from __future__ import annotations

from pathlib import Path
from typing import Protocol

from core.command_runner import CommandError, CommandRunner

from .errors import ToolInvocationError
from .targets import Arch, CompileTarget, Opt, Platform


class HostInfoProvider(Protocol):
    def platform(self) -> Platform: ...
    def arch(self) -> Arch: ...
    def name(self) -> str: ...
    def details(self) -> str: ...


def host_target(host: HostInfoProvider) -> CompileTarget:
    """The target used to run dev tools on the build machine."""
    return CompileTarget(host.platform(), host.arch(), Opt.DEBUG)


class GenericHostInfo:
    def platform(self) -> Platform:
        return Platform.host()

    def arch(self) -> Arch:
        return Arch.host()

    def name(self) -> str:
        return "host"

    def details(self) -> str:
        return ""


class LinuxHostInfo(GenericHostInfo):
    """Reads ``uname`` and ``/etc/os-release``."""

    def __init__(self, runner: CommandRunner, os_release: Path = Path("/etc/os-release")) -> None:
        self._runner = runner
        self._os_release = os_release

    def _uname(self, *args: str) -> str:
        try:
            result = self._runner.run(["uname", *args], note="uname")
        except CommandError as exc:
            raise ToolInvocationError(str(exc), returncode=exc.returncode) from exc
        return result.stdout.strip()

    def name(self) -> str:
        return self._uname()

    def details(self) -> str:
        distro = ""
        if self._os_release.is_file():
            distro = parse_os_release(self._os_release.read_text(encoding="utf-8")).get("NAME", "")
        return f"{distro} {self._uname('-r')}".strip()


def parse_os_release(text: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if not sep or key.startswith("#"):
            continue
        values[key.strip()] = value.strip().strip('"')
    return values


def host_info_provider(runner: CommandRunner) -> HostInfoProvider:
    if Platform.host() is Platform.LINUX:
        return LinuxHostInfo(runner)
    return GenericHostInfo()


__all__ = [
    "GenericHostInfo",
    "HostInfoProvider",
    "LinuxHostInfo",
    "host_info_provider",
    "host_target",
    "parse_os_release",
]
