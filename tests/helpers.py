from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Mapping
import io
import tarfile
import urllib.error
import zipfile

import zstandard as zstd

from core.command_runner import RecordingCommandRunner
from core.console import Console
from xbuild.config import BuildConfig
from xbuild.env import BuildEnv
from xbuild.flutter import Flutter
from xbuild.host import host_target
from xbuild.targets import Arch, BuildTarget, Opt, Platform

ENGINE_VERSION = "b8d35810e91ab8fc39ba5e7a41bff6f697e8e3a8"
FONTS_MARKER = "flutter_infra_release/flutter/fonts/3012db47f3130e62f7cc0beabff968a33cbec8d8/fonts.zip"
FLUTTER_TAG = "3.13.0"


class FakeHost:
    def __init__(self, platform: Platform = Platform.LINUX, arch: Arch = Arch.X64) -> None:
        self._platform = platform
        self._arch = arch

    def platform(self) -> Platform:
        return self._platform

    def arch(self) -> Arch:
        return self._arch

    def name(self) -> str:
        return "fake"

    def details(self) -> str:
        return ""


class FakeResponse(io.BytesIO):
    def __init__(self, body: bytes, *, status: int = 200, headers: Mapping[str, str] | None = None) -> None:
        super().__init__(body)
        self.status = status
        self.headers = dict(headers) if headers is not None else {"Content-Length": str(len(body))}

    def getcode(self) -> int:
        return self.status


class FakeServer:
    """Stands in for ``urllib.request.urlopen`` and counts requests per URL."""

    def __init__(self, routes: Mapping[str, bytes] | None = None) -> None:
        self.routes: Dict[str, bytes] = dict(routes or {})
        self.requests: list[str] = []

    def __call__(self, request, *args, **kwargs):
        url = request.full_url if hasattr(request, "full_url") else str(request)
        self.requests.append(url)
        if url not in self.routes:
            raise urllib.error.HTTPError(url, 404, "Not Found", hdrs=None, fp=None)
        return FakeResponse(self.routes[url])


def tar_zst_bytes(
    files: Mapping[str, bytes],
    *,
    symlinks: Mapping[str, str] | None = None,
    directories: Iterable[str] = (),
) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        for name in directories:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
        for name, target in (symlinks or {}).items():
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
    return zstd.ZstdCompressor().compress(buffer.getvalue())


def zip_bytes(files: Mapping[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in files.items():
            archive.writestr(name, data)
    return buffer.getvalue()


def write_flutter_checkout(repo: Path) -> None:
    internal = repo / "bin" / "internal"
    internal.mkdir(parents=True, exist_ok=True)
    (internal / "engine.version").write_text(f"{ENGINE_VERSION}\n", encoding="utf-8")
    (internal / "material_fonts.version").write_text(f"{FONTS_MARKER}\n", encoding="utf-8")
    (repo / ".git").mkdir(exist_ok=True)


def write_host_engine(flutter: Flutter, host: FakeHost) -> Path:
    """Populate the host-Debug engine with the files the compile stages look up."""
    engine = flutter.engine_dir(host_target(host))
    (engine / "dart-sdk" / "bin").mkdir(parents=True, exist_ok=True)
    (engine / "dart-sdk" / "bin" / "dart").write_text("", encoding="utf-8")
    (engine / "frontend_server.dart.snapshot").write_text("", encoding="utf-8")
    (engine / "flutter_patched_sdk").mkdir(exist_ok=True)
    (engine / "flutter_patched_sdk_product").mkdir(exist_ok=True)
    (engine / "sky_engine").mkdir(exist_ok=True)
    return engine


def make_env(
    root: Path,
    *,
    platform: Platform = Platform.ANDROID,
    archs: Iterable[Arch] = (Arch.ARM64,),
    opt: Opt = Opt.DEBUG,
    host: FakeHost | None = None,
    runner: RecordingCommandRunner | None = None,
    flutter: bool = True,
    config: Mapping[str, object] | None = None,
) -> BuildEnv:
    """A BuildEnv rooted in *root* with the cache and build dirs underneath it."""
    app = root / "app"
    app.mkdir(parents=True, exist_ok=True)
    data = {"cache_dir": str(root / "cache"), "build_dir": str(root / "build")}
    data.update(config or {})
    build_config = BuildConfig.from_mapping(data, root_dir=app)
    host = host or FakeHost()
    runner = runner or RecordingCommandRunner()
    console = Console("none")
    handle: Flutter | None = None
    if flutter:
        repo = build_config.cache_dir / "flutter"
        write_flutter_checkout(repo)
        handle = Flutter(
            git=Path("git"),
            repo=repo,
            cache=build_config.cache_dir,
            runner=runner,
            host=host,
            console=console,
        )
    return BuildEnv(
        target=BuildTarget.create(platform, opt, list(archs)),
        root_dir=app,
        config=build_config,
        runner=runner,
        console=console,
        host=host,
        flutter=handle,
    )
