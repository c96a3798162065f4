"""Artifact cache: download, extract and materialize SDKs and engine artifacts.

An artifact's output path existing is the only signal that it is complete.
All work happens under ``<cache>/download`` and the finished result is
renamed into place as the last step, so an interrupted or failed fetch
never leaves anything at the output path.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping
import http.client
import os
import shutil
import tarfile
import urllib.error
import urllib.request
import zipfile

import zstandard as zstd

from core.archive import ArchiveManager, EntryFilter

from .env import BuildEnv
from .errors import ArchiveError, FetchError, MissingArtifactError, UnsupportedCombinationError
from .host import host_target
from .targets import CompileTarget, Platform
from .toolchain import invoke

GITHUB_RELEASE_URL = "https://github.com/{org}/{repo}/releases/download/{tag}/{artifact}"
SDK_ORG = "cloudpeers"
SDK_REPO = "x"
SDK_TAG = "v0.1.0+2"
ENGINE_REPO = "flutter-engine"
GOOGLE_MAVEN_URL = "https://maven.google.com"
FLUTTER_MAVEN_URL = "https://storage.googleapis.com/download.flutter.io"
GOOGLE_STORAGE_URL = "https://storage.googleapis.com"

CHUNK_SIZE = 64 * 1024
USER_AGENT = "xbuild"


@dataclass(slots=True)
class WorkItem:
    """A single fetch request: where to get an artifact and where it must end up."""

    url: str
    output: Path
    skip_symlinks: bool = False
    skip_colons: bool = False

    @classmethod
    def new(cls, output: Path, url: str) -> "WorkItem":
        return cls(url=url, output=output)

    @classmethod
    def github_release(cls, output: Path, org: str, repo: str, tag: str, artifact: str) -> "WorkItem":
        url = GITHUB_RELEASE_URL.format(org=org, repo=repo, tag=tag, artifact=artifact)
        return cls.new(output, url)

    def no_symlinks(self) -> "WorkItem":
        """Skip symbolic links when extracting.

        The Windows SDK carries case-variant symlinks that case-insensitive
        file systems cannot hold.
        """
        self.skip_symlinks = True
        return self

    def no_colons(self) -> "WorkItem":
        """Skip entries whose path contains a colon (man pages), invalid on Windows."""
        self.skip_colons = True
        return self

    @property
    def name(self) -> str:
        return self.url.rsplit("/", 1)[-1]

    def skips(self, member: tarfile.TarInfo) -> bool:
        if self.skip_symlinks and member.issym():
            return True
        if self.skip_colons and ":" in member.name:
            return True
        return False


def _content_length(headers: Mapping[str, str] | None) -> int:
    if headers is None:
        return 0
    try:
        return max(0, int(headers.get("Content-Length") or 0))
    except (TypeError, ValueError):
        return 0


def _discard(path: Path) -> None:
    """Best-effort removal; the error that triggered cleanup takes precedence."""
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path, ignore_errors=True)
    except OSError:
        pass


def _move(source: Path, dest: Path) -> None:
    """Rename *source* to *dest*; across filesystems, copy beside *dest* and swap in."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        source.rename(dest)
        return
    except OSError:
        pass
    partial = dest.with_name(f".{dest.name}.partial")
    _discard(partial)
    try:
        if source.is_dir() and not source.is_symlink():
            shutil.copytree(source, partial, symlinks=True)
        else:
            shutil.copy2(source, partial, follow_symlinks=False)
        os.replace(partial, dest)
    except OSError:
        _discard(partial)
        raise
    _discard(source)


class DownloadManager:
    def __init__(self, env: BuildEnv) -> None:
        self.env = env
        self._archives = ArchiveManager(env.console)
        self.download_dir = env.download_dir()
        self.download_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def download(self, url: str, dest: Path) -> None:
        """Blocking GET of *url* streamed into *dest*."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        self.env.console.debug(f"GET {url}")
        request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        try:
            response = urllib.request.urlopen(request)
        except urllib.error.HTTPError as exc:
            raise FetchError(f"GET {url} returned status code {exc.code}", url=url, status=exc.code) from exc
        except urllib.error.URLError as exc:
            raise FetchError(f"GET {url} failed: {exc.reason}", url=url) from exc

        with response:
            status = getattr(response, "status", None) or response.getcode()
            if status is None or not 200 <= status < 300:
                raise FetchError(f"GET {url} returned status code {status}", url=url, status=status)
            progress = self.env.console.progress(dest.name, _content_length(response.headers))
            try:
                with dest.open("wb") as handle:
                    while True:
                        chunk = response.read(CHUNK_SIZE)
                        if not chunk:
                            break
                        handle.write(chunk)
                        progress.update(len(chunk))
            except (http.client.HTTPException, ConnectionError, TimeoutError) as exc:
                raise FetchError(f"GET {url} failed while reading body: {exc}", url=url, status=status) from exc
            progress.finish()

    # ------------------------------------------------------------------
    # Materialization
    # ------------------------------------------------------------------

    def _extract(self, archive: Path, dest: Path, skip: EntryFilter | None = None) -> None:
        try:
            self._archives.extract_archive(archive_path=archive, destination_dir=dest, skip=skip)
        except (tarfile.TarError, zipfile.BadZipFile, zstd.ZstdError, ValueError, EOFError) as exc:
            raise ArchiveError(f"failed to extract {archive}: {exc}", archive=archive) from exc

    @staticmethod
    def _install(staging: Path, output: Path) -> None:
        """Move extracted content to *output*, which is created last."""
        candidate = staging / output.name
        if candidate.exists() or candidate.is_symlink():
            for entry in sorted(staging.iterdir()):
                if entry.name == output.name:
                    continue
                sibling = output.parent / entry.name
                if not (sibling.exists() or sibling.is_symlink()):
                    _move(entry, sibling)
            _move(candidate, output)
        else:
            _move(staging, output)

    def fetch(self, item: WorkItem) -> None:
        """Materialize *item*; a no-op when its output already exists."""
        if item.output.exists() or item.output.is_symlink():
            return
        name = item.name
        archive = self.download_dir / name
        staging = self.download_dir / f"{name}.staging"
        self.env.console.info(f"Fetching {name}")
        try:
            _discard(staging)
            if name.endswith(".tar.zst"):
                self.download(item.url, archive)
                self._extract(archive, staging, skip=item.skips)
                self._install(staging, item.output)
            elif name.endswith(".framework.zip"):
                self.download(item.url, archive)
                framework_dir = self.env.cache_dir() / "framework"
                self._extract(archive, framework_dir)
                nested = framework_dir / name
                if not nested.is_file():
                    raise ArchiveError(f"{archive} does not contain nested archive {name}", archive=archive)
                self._extract(nested, staging)
                _move(staging, item.output)
            elif name.endswith(".zip"):
                self.download(item.url, archive)
                self._extract(archive, staging)
                self._install(staging, item.output)
            else:
                self.download(item.url, archive)
                _move(archive, item.output)
        except Exception:
            _discard(staging)
            _discard(archive)
            _discard(item.output)
            raise
        _discard(staging)

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def prefetch(self, build_dex: bool = False) -> None:
        """Fetch every SDK and engine artifact the selected target needs.

        SDKs for the host's own platform are assumed installed and skipped.
        """
        env = self.env
        platform = env.target.platform
        host = env.host.platform()
        if platform is Platform.LINUX and host is not Platform.LINUX:
            raise UnsupportedCombinationError(
                f"cross compiling to linux from {host} is not yet supported"
            )
        if platform is Platform.WINDOWS and host is not Platform.WINDOWS:
            self.windows_sdk()
        elif platform is Platform.MACOS and host is not Platform.MACOS:
            self.macos_sdk()
        elif platform is Platform.ANDROID:
            self.android_ndk()
            self.android_jar()
        elif platform is Platform.IOS:
            self.ios_sdk()

        if env.flutter is None:
            return
        targets = list(env.target.compile_targets())
        host_debug = host_target(env.host)
        if host_debug not in targets:
            targets.append(host_debug)
        for target in targets:
            self.flutter_engine(target)
        self.material_fonts()
        if build_dex and platform is Platform.ANDROID:
            self.r8()
            self.flutter_embedding()

    # ------------------------------------------------------------------
    # SDKs
    # ------------------------------------------------------------------

    def _sdk_item(self, output: Path, artifact: str) -> WorkItem:
        return WorkItem.github_release(output, SDK_ORG, SDK_REPO, SDK_TAG, artifact)

    def windows_sdk(self) -> None:
        item = self._sdk_item(self.env.windows_sdk(), "Windows.sdk.tar.zst").no_symlinks()
        self.fetch(item)

    def macos_sdk(self) -> None:
        item = self._sdk_item(self.env.macos_sdk(), "MacOSX.sdk.tar.zst")
        if self.env.host.platform() is Platform.WINDOWS:
            item.no_colons()
        self.fetch(item)

    def ios_sdk(self) -> None:
        item = self._sdk_item(self.env.ios_sdk(), "iPhoneOS.sdk.tar.zst")
        if self.env.host.platform() is Platform.WINDOWS:
            item.no_colons()
        self.fetch(item)

    def android_ndk(self) -> None:
        self.fetch(self._sdk_item(self.env.android_ndk(), "Android.ndk.tar.zst"))

    def android_jar(self) -> None:
        env = self.env
        path = env.android_jar()
        if path.exists():
            return
        sdk = env.target_sdk_version()
        if env.config.android_jar_url:
            self.fetch(WorkItem.new(path, env.config.android_jar_url.format(sdk=sdk)))
        else:
            sdkmanager = env.config.tools.locate("sdkmanager")
            invoke(
                env.runner,
                [sdkmanager, f"--sdk_root={env.android_sdk()}", f"platforms;android-{sdk}"],
                note="sdkmanager",
                verbose=env.verbose,
            )
        if not path.exists():
            raise MissingArtifactError(path, f"platforms;android-{sdk} did not provide android.jar")

    # ------------------------------------------------------------------
    # Flutter artifacts
    # ------------------------------------------------------------------

    def flutter_engine(self, target: CompileTarget) -> None:
        flutter = self.env.require_flutter()
        version = flutter.engine_version()
        artifact = f"engine-{target.platform}-{target.arch}-{target.opt}.tar.zst"
        item = WorkItem.github_release(flutter.engine_dir(target), SDK_ORG, ENGINE_REPO, version, artifact)
        self.fetch(item)

    def material_fonts(self) -> None:
        flutter = self.env.require_flutter()
        url = f"{GOOGLE_STORAGE_URL}/{flutter.material_fonts_marker()}"
        self.fetch(WorkItem.new(flutter.material_fonts(), url))

    def r8_jar(self) -> Path:
        version = self.env.config.r8_version
        return self.env.cache_dir() / "r8" / f"r8-{version}.jar"

    def r8(self) -> None:
        version = self.env.config.r8_version
        url = f"{GOOGLE_MAVEN_URL}/com/android/tools/r8/{version}/r8-{version}.jar"
        self.fetch(WorkItem.new(self.r8_jar(), url))

    def flutter_embedding_jar(self) -> Path:
        flutter = self.env.require_flutter()
        opt = self.env.target.opt
        return self.env.cache_dir() / "engine" / flutter.engine_version() / str(opt) / "flutter_embedding.jar"

    def flutter_embedding(self) -> None:
        flutter = self.env.require_flutter()
        engine = flutter.engine_version()
        artifact = f"flutter_embedding_{self.env.target.opt}"
        version = f"1.0.0-{engine}"
        url = f"{FLUTTER_MAVEN_URL}/io/flutter/{artifact}/{version}/{artifact}-{version}.jar"
        self.fetch(WorkItem.new(self.flutter_embedding_jar(), url))


__all__ = ["DownloadManager", "GITHUB_RELEASE_URL", "WorkItem"]
