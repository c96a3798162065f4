"""Read-only build context shared by every pipeline stage."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from core.command_runner import CommandRunner, SubprocessCommandRunner
from core.console import Console

from .config import BuildConfig
from .errors import MissingArtifactError
from .flutter import Flutter
from .host import HostInfoProvider, host_info_provider
from .targets import BuildTarget, CompileTarget

MANIFEST_NAME = "pubspec.yaml"


@dataclass(frozen=True)
class BuildEnv:
    """Selected target, resolved paths and tool handles.

    Construction validates paths but fetches nothing; stages only read it.
    """

    target: BuildTarget
    root_dir: Path
    config: BuildConfig
    runner: CommandRunner
    console: Console
    host: HostInfoProvider
    flutter: Flutter | None = None

    @classmethod
    def new(
        cls,
        *,
        target: BuildTarget,
        root_dir: Path,
        config: BuildConfig | None = None,
        runner: CommandRunner | None = None,
        console: Console | None = None,
        host: HostInfoProvider | None = None,
    ) -> "BuildEnv":
        root_dir = root_dir.expanduser().resolve()
        if not root_dir.is_dir():
            raise MissingArtifactError(root_dir, "application root does not exist")
        config = config or BuildConfig.load(root_dir)
        runner = runner or SubprocessCommandRunner()
        console = console or Console()
        host = host or host_info_provider(runner)

        flutter: Flutter | None = None
        if (root_dir / MANIFEST_NAME).is_file():
            flutter = Flutter.locate(
                repo=config.flutter_repo or config.cache_dir / "flutter",
                cache=config.cache_dir,
                runner=runner,
                host=host,
                console=console,
                tools=config.tools,
                branch=config.flutter_branch,
            )
        return cls(
            target=target,
            root_dir=root_dir,
            config=config,
            runner=runner,
            console=console,
            host=host,
            flutter=flutter,
        )

    @property
    def verbose(self) -> bool:
        return self.console.verbose

    def cache_dir(self) -> Path:
        return self.config.cache_dir

    def build_dir(self) -> Path:
        return self.config.build_dir

    def target_dir(self, target: CompileTarget) -> Path:
        return self.build_dir() / str(target.opt) / str(target.platform) / str(target.arch)

    def download_dir(self) -> Path:
        return self.cache_dir() / "download"

    def windows_sdk(self) -> Path:
        return self.cache_dir() / "Windows.sdk"

    def macos_sdk(self) -> Path:
        return self.cache_dir() / "MacOSX.sdk"

    def ios_sdk(self) -> Path:
        return self.cache_dir() / "iPhoneOS.sdk"

    def android_ndk(self) -> Path:
        return self.cache_dir() / "Android.ndk"

    def android_sdk(self) -> Path:
        if self.config.android_sdk is None:
            raise MissingArtifactError(
                Path("$ANDROID_HOME"), "set ANDROID_HOME or 'android_sdk' in xbuild.toml"
            )
        return self.config.android_sdk

    def target_sdk_version(self) -> int:
        return self.config.target_sdk_version

    def android_jar(self) -> Path:
        sdk = self.target_sdk_version()
        return self.android_sdk() / "platforms" / f"android-{sdk}" / "android.jar"

    def require_flutter(self) -> Flutter:
        if self.flutter is None:
            raise MissingArtifactError(self.root_dir / MANIFEST_NAME, "not a flutter application")
        return self.flutter


__all__ = ["BuildEnv", "MANIFEST_NAME"]
