"""Flutter toolchain checkout: source sync, version markers and engine paths."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple
import os

from core.command_runner import CommandError, CommandRunner
from core.console import Console

from .assets import AssetBundle
from .errors import MissingArtifactError, VersionResolutionError
from .host import HostInfoProvider, host_target
from .targets import CompileTarget, Platform
from .toolchain import ToolSet, exe_name, invoke

FLUTTER_URL = "https://github.com/flutter/flutter"


class Flutter:
    """Handle on a local Flutter checkout and the engine cache derived from it.

    ``git`` is located once up front; nothing is spawned until a method
    that needs the repository is called.
    """

    def __init__(
        self,
        *,
        git: Path,
        repo: Path,
        cache: Path,
        runner: CommandRunner,
        host: HostInfoProvider,
        console: Console,
        branch: str = "stable",
    ) -> None:
        self.git = git
        self.repo = repo
        self.cache = cache
        self.branch = branch
        self._runner = runner
        self._host = host
        self._console = console

    @classmethod
    def locate(
        cls,
        *,
        repo: Path,
        cache: Path,
        runner: CommandRunner,
        host: HostInfoProvider,
        console: Console,
        tools: ToolSet | None = None,
        branch: str = "stable",
    ) -> "Flutter":
        git = (tools or ToolSet()).locate("git")
        return cls(git=git, repo=repo, cache=cache, runner=runner, host=host, console=console, branch=branch)

    def root(self) -> Path:
        return self.repo

    @property
    def verbose(self) -> bool:
        return self._console.verbose

    # ------------------------------------------------------------------
    # Source sync
    # ------------------------------------------------------------------

    def git_clone(self) -> None:
        clone_dir = self.repo.parent
        clone_dir.mkdir(parents=True, exist_ok=True)
        self._console.info(f"Cloning {FLUTTER_URL} ({self.branch}) into {self.repo}")
        invoke(
            self._runner,
            [self.git, "clone", FLUTTER_URL, self.repo.name, "--depth", "1", "--branch", self.branch],
            cwd=clone_dir,
            note="git clone",
            verbose=self.verbose,
        )

    def git_pull(self) -> None:
        """Clone when missing, otherwise fast-forward the pinned branch."""
        if not self.repo.exists():
            self.git_clone()
            return
        if not (self.repo / ".git").exists():
            raise MissingArtifactError(self.repo / ".git", "flutter checkout is not a git repository")
        invoke(
            self._runner,
            [self.git, "pull", "--ff-only", "origin", self.branch],
            cwd=self.repo,
            note="git pull",
            verbose=True,
        )

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def version(self) -> str:
        """The release tag pointing at the checked-out revision."""
        try:
            result = self._runner.run([self.git, "tag", "--points-at", "HEAD"], cwd=self.repo, note="git tag")
        except CommandError as exc:
            raise VersionResolutionError(f"failed to get flutter version: {exc}") from exc
        tags = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not tags:
            raise VersionResolutionError(f"no tag points at HEAD of {self.repo}")
        return tags[0]

    def artifact_version(self, artifact: str) -> str:
        path = self.repo / "bin" / "internal" / f"{artifact}.version"
        if not path.is_file():
            raise VersionResolutionError(f"failed to locate {artifact}.version at {path}")
        version = path.read_text(encoding="utf-8").strip()
        if not version:
            raise VersionResolutionError(f"{path} is empty")
        return version

    def engine_version(self) -> str:
        return self.artifact_version("engine")

    def material_fonts_marker(self) -> str:
        return self.artifact_version("material_fonts")

    def material_fonts_version(self) -> str:
        # flutter_infra_release/flutter/fonts/<version>/fonts.zip
        parts = self.material_fonts_marker().split("/")
        if len(parts) < 4 or not parts[3]:
            raise VersionResolutionError(f"unexpected material_fonts marker '{'/'.join(parts)}'")
        return parts[3]

    # ------------------------------------------------------------------
    # Cache paths
    # ------------------------------------------------------------------

    def engine_dir(self, target: CompileTarget) -> Path:
        return (
            self.cache
            / "engine"
            / self.engine_version()
            / str(target.opt)
            / str(target.platform)
            / str(target.arch)
        )

    def host_file(self, path: Path | str) -> Path:
        """Resolve *path* inside the host-Debug engine; it must already exist."""
        resolved = self.engine_dir(host_target(self._host)) / path
        if not resolved.exists():
            raise MissingArtifactError(resolved)
        return resolved

    def material_fonts(self) -> Path:
        return self.cache / "material_fonts" / self.material_fonts_version()

    def build_flutter_assets(self, root_dir: Path, flutter_assets: Path) -> None:
        """Bundle the assets and fonts declared by the app at *root_dir*."""
        AssetBundle.new(root_dir, self.material_fonts()).assemble(flutter_assets)

    def icudtl_dat(self) -> Path:
        return self.host_file("icudtl.dat")

    def isolate_snapshot_data(self) -> Path:
        return self.host_file("isolate_snapshot.bin")

    def vm_snapshot_data(self) -> Path:
        return self.host_file("vm_isolate_snapshot.bin")

    def frontend_server(self) -> Path:
        return self.host_file("frontend_server.dart.snapshot")

    def patched_sdk(self, product: bool) -> Path:
        return self.host_file("flutter_patched_sdk_product" if product else "flutter_patched_sdk")

    def gen_snapshot(self, target: CompileTarget) -> Path:
        """The snapshot generator for *target*; iOS only ships the arm64 variant."""
        name = "gen_snapshot_arm64" if target.platform is Platform.IOS else "gen_snapshot"
        return self.engine_dir(target) / exe_name(name, self._host.platform())

    def dart(self) -> List[str]:
        path = Path("dart-sdk") / "bin" / exe_name("dart", self._host.platform())
        return [str(self.host_file(path))]

    # ------------------------------------------------------------------
    # Package manager
    # ------------------------------------------------------------------

    def dart_pub(self, root_dir: Path) -> Tuple[List[str], Dict[str, str]]:
        """Prepare the checkout for ``dart pub`` and return the command prefix and environment."""
        flutter_root = self.root()
        (flutter_root / "version").write_text(self.version(), encoding="utf-8")
        pkg_dir = flutter_root / "bin" / "cache" / "pkg"
        pkg_dir.mkdir(parents=True, exist_ok=True)
        src_dir = self.host_file("sky_engine")
        dest_dir = pkg_dir / "sky_engine"
        if dest_dir.is_symlink() or dest_dir.exists():
            _remove_link(dest_dir)
        os.symlink(src_dir, dest_dir, target_is_directory=True)
        return [*self.dart(), "pub"], {"FLUTTER_ROOT": str(flutter_root)}

    def pub_get(self, root_dir: Path) -> None:
        command, env = self.dart_pub(root_dir)
        invoke(
            self._runner,
            [*command, "get", "--no-precompile"],
            cwd=root_dir,
            env=env,
            note="dart pub get",
            verbose=self.verbose,
        )

    def pub_upgrade(self, root_dir: Path) -> None:
        command, env = self.dart_pub(root_dir)
        invoke(
            self._runner,
            [*command, "upgrade", "--no-precompile"],
            cwd=root_dir,
            env=env,
            note="dart pub upgrade",
            verbose=True,
        )


def _remove_link(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    else:
        # Windows directory junctions report as directories.
        path.rmdir()


__all__ = ["FLUTTER_URL", "Flutter"]
