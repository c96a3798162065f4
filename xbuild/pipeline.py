"""Ordered stages turning application source into a loadable snapshot library.

``plan_stages`` maps a compile target to its stage list. Snapshot
generation differs per platform family and lives in the snapshot
strategies; everything before it is shared.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence
import json

from .depfile import is_stale
from .env import BuildEnv
from .errors import ToolInvocationError
from .flutter import Flutter
from .targets import CompileTarget, Opt, Platform
from .toolchain import invoke

APPLE_RPATHS = ("@executable_path/Frameworks", "@loader_path/Frameworks")
PACKAGE_CONFIG = Path(".dart_tool") / "package_config.json"
DEFAULT_TARGET_FILE = Path("lib") / "main.dart"


@dataclass(frozen=True, slots=True)
class Artifact:
    kind: str
    path: Path


@dataclass(frozen=True, slots=True)
class BuildLayout:
    """Where each intermediate and final product lives for one compile target."""

    build_dir: Path
    target_file: Path
    snapshot: Path

    @classmethod
    def for_target(cls, env: BuildEnv, target: CompileTarget, target_file: Path | None = None) -> "BuildLayout":
        build_dir = env.target_dir(target)
        name = "App" if target.platform.is_apple else "libapp.so"
        return cls(
            build_dir=build_dir,
            target_file=target_file or DEFAULT_TARGET_FILE,
            snapshot=build_dir / name,
        )

    @property
    def kernel_blob(self) -> Path:
        return self.build_dir / "kernel_blob.bin"

    @property
    def depfile(self) -> Path:
        return self.build_dir / "kernel_blob.bin.d"

    @property
    def kernel_command_file(self) -> Path:
        return self.build_dir / "kernel_blob.bin.cmd"

    @property
    def assembly(self) -> Path:
        return self.build_dir / "snapshot.S"

    @property
    def object(self) -> Path:
        return self.build_dir / "snapshot.o"


@dataclass(frozen=True, slots=True)
class BuildOutputs:
    kernel_blob: Path
    depfile: Path
    snapshot: Path


# ----------------------------------------------------------------------
# Command construction
# ----------------------------------------------------------------------

def kernel_command(
    flutter: Flutter,
    *,
    target_file: Path,
    output: Path,
    depfile: Path,
    opt: Opt,
) -> List[str]:
    command = [
        *flutter.dart(),
        str(flutter.frontend_server()),
        "--target=flutter",
        "--no-print-incremental-dependencies",
        "--packages",
        str(PACKAGE_CONFIG),
        "--output-dill",
        str(output),
        "--depfile",
        str(depfile),
    ]
    if opt is Opt.RELEASE:
        command += [
            "--sdk-root",
            str(flutter.patched_sdk(product=True)),
            "-Ddart.vm.profile=false",
            "-Ddart.vm.product=true",
            "--aot",
            "--tfa",
        ]
    else:
        command += [
            "--sdk-root",
            str(flutter.patched_sdk(product=False)),
            "-Ddart.vm.profile=false",
            "-Ddart.vm.product=false",
            "--track-widget-creation",
        ]
    command.append(str(target_file))
    return command


def gen_snapshot_command(flutter: Flutter, target: CompileTarget) -> List[str]:
    return [str(flutter.gen_snapshot(target)), "--deterministic", "--strip"]


def apple_platform_flags(target: CompileTarget, *, sdkroot: Path | None, ios_min_version: str) -> List[str]:
    if target.platform is not Platform.IOS:
        return []
    flags = [f"-miphoneos-version-min={ios_min_version}"]
    if sdkroot is not None:
        flags.append(f"--sysroot={sdkroot}")
    return flags


def apple_env(target: CompileTarget, sdkroot: Path | None) -> Dict[str, str] | None:
    if target.platform is Platform.IOS and sdkroot is not None:
        return {"SDKROOT": str(sdkroot)}
    return None


def assemble_command(
    clang: str,
    target: CompileTarget,
    *,
    assembly: Path,
    output: Path,
    sdkroot: Path | None,
    ios_min_version: str,
) -> List[str]:
    return [
        clang,
        "-c",
        str(assembly),
        "-o",
        str(output),
        "-arch",
        target.arch.apple_name,
        *apple_platform_flags(target, sdkroot=sdkroot, ios_min_version=ios_min_version),
    ]


def link_dylib_command(
    clang: str,
    target: CompileTarget,
    *,
    objects: Sequence[Path],
    output: Path,
    sdkroot: Path | None,
    ios_min_version: str,
) -> List[str]:
    name = output.name
    command = [clang, "-arch", target.arch.apple_name, "-dynamiclib"]
    for rpath in APPLE_RPATHS:
        command += ["-Xlinker", "-rpath", "-Xlinker", rpath]
    command += ["-install_name", f"@rpath/{name}.framework/{name}", "-o", str(output)]
    command += [str(path) for path in objects]
    command += apple_platform_flags(target, sdkroot=sdkroot, ios_min_version=ios_min_version)
    return command


def _sdkroot(env: BuildEnv, target: CompileTarget) -> Path | None:
    return env.ios_sdk() if target.platform is Platform.IOS else None


def _discard_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        pass


def _run_producing(
    build_env: BuildEnv,
    command: Sequence[str],
    output: Path,
    *,
    cwd: Path | None = None,
    env: Dict[str, str] | None = None,
    note: str | None = None,
) -> None:
    """Run *command*; a failed run leaves nothing at *output*."""
    try:
        invoke(build_env.runner, command, cwd=cwd, env=env, note=note, verbose=build_env.verbose)
    except ToolInvocationError:
        _discard_file(output)
        raise


# ----------------------------------------------------------------------
# Stages
# ----------------------------------------------------------------------

class Stage(ABC):
    description: str = ""

    @abstractmethod
    def build(self, env: BuildEnv) -> Artifact:
        """Run the stage and return what it produced."""


class SourceSyncStage(Stage):
    description = "sync flutter checkout"

    def build(self, env: BuildEnv) -> Artifact:
        flutter = env.require_flutter()
        flutter.git_pull()
        return Artifact("source", flutter.root())


class DependencyStage(Stage):
    description = "resolve dart packages"

    def __init__(self, upgrade: bool = False) -> None:
        self.upgrade = upgrade

    def build(self, env: BuildEnv) -> Artifact:
        flutter = env.require_flutter()
        if self.upgrade:
            flutter.pub_upgrade(env.root_dir)
        else:
            flutter.pub_get(env.root_dir)
        return Artifact("packages", env.root_dir / PACKAGE_CONFIG)


class KernelStage(Stage):
    description = "compile kernel blob"

    def __init__(self, opt: Opt, layout: BuildLayout) -> None:
        self.opt = opt
        self.layout = layout

    def build(self, env: BuildEnv) -> Artifact:
        layout = self.layout
        flutter = env.require_flutter()
        command = kernel_command(
            flutter,
            target_file=layout.target_file,
            output=layout.kernel_blob,
            depfile=layout.depfile,
            opt=self.opt,
        )
        if not _kernel_is_stale(layout, command):
            env.console.debug(f"{layout.kernel_blob} is up to date")
            return Artifact("kernel", layout.kernel_blob)
        layout.build_dir.mkdir(parents=True, exist_ok=True)
        _discard_file(layout.kernel_command_file)
        built_before = _mtime_ns(layout.kernel_blob)
        _run_producing(env, command, layout.kernel_blob, cwd=env.root_dir, note="frontend_server")
        # Record only a blob this run produced.
        if _mtime_ns(layout.kernel_blob) not in (None, built_before):
            layout.kernel_command_file.write_text(json.dumps(command), encoding="utf-8")
        return Artifact("kernel", layout.kernel_blob)


def _mtime_ns(path: Path) -> int | None:
    try:
        return path.stat().st_mtime_ns
    except FileNotFoundError:
        return None


def _kernel_is_stale(layout: BuildLayout, command: Sequence[str]) -> bool:
    """Stale when inputs changed or the blob was built by a different command line."""
    if is_stale(layout.depfile, layout.kernel_blob):
        return True
    try:
        recorded = json.loads(layout.kernel_command_file.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return True
    return recorded != list(command)


class ElfSnapshotStage(Stage):
    description = "generate ELF snapshot"

    def __init__(self, target: CompileTarget, layout: BuildLayout) -> None:
        self.target = target
        self.layout = layout

    def build(self, env: BuildEnv) -> Artifact:
        flutter = env.require_flutter()
        layout = self.layout
        command = [
            *gen_snapshot_command(flutter, self.target),
            "--snapshot_kind=app-aot-elf",
            f"--elf={layout.snapshot}",
            str(layout.kernel_blob),
        ]
        _run_producing(env, command, layout.snapshot, cwd=env.root_dir, note="gen_snapshot")
        return Artifact("snapshot", layout.snapshot)


class AssemblySnapshotStage(Stage):
    description = "generate assembly snapshot"

    def __init__(self, target: CompileTarget, layout: BuildLayout) -> None:
        self.target = target
        self.layout = layout

    def build(self, env: BuildEnv) -> Artifact:
        flutter = env.require_flutter()
        layout = self.layout
        command = [
            *gen_snapshot_command(flutter, self.target),
            "--snapshot_kind=app-aot-assembly",
            f"--assembly={layout.assembly}",
            str(layout.kernel_blob),
        ]
        _run_producing(env, command, layout.assembly, cwd=env.root_dir, note="gen_snapshot")
        return Artifact("assembly", layout.assembly)


class AssembleObjectStage(Stage):
    description = "assemble snapshot object"

    def __init__(self, target: CompileTarget, layout: BuildLayout) -> None:
        self.target = target
        self.layout = layout

    def build(self, env: BuildEnv) -> Artifact:
        sdkroot = _sdkroot(env, self.target)
        command = assemble_command(
            env.config.tools.command("clang"),
            self.target,
            assembly=self.layout.assembly,
            output=self.layout.object,
            sdkroot=sdkroot,
            ios_min_version=env.config.ios_min_version,
        )
        _run_producing(env, command, self.layout.object, env=apple_env(self.target, sdkroot), note="clang")
        return Artifact("object", self.layout.object)


class LinkDylibStage(Stage):
    description = "link snapshot library"

    def __init__(self, target: CompileTarget, layout: BuildLayout) -> None:
        self.target = target
        self.layout = layout

    def build(self, env: BuildEnv) -> Artifact:
        sdkroot = _sdkroot(env, self.target)
        command = link_dylib_command(
            env.config.tools.command("clang"),
            self.target,
            objects=[self.layout.object],
            output=self.layout.snapshot,
            sdkroot=sdkroot,
            ios_min_version=env.config.ios_min_version,
        )
        _run_producing(env, command, self.layout.snapshot, env=apple_env(self.target, sdkroot), note="clang")
        return Artifact("snapshot", self.layout.snapshot)


# ----------------------------------------------------------------------
# Strategies
# ----------------------------------------------------------------------

class SnapshotStrategy(ABC):
    @abstractmethod
    def stages(self, target: CompileTarget, layout: BuildLayout) -> List[Stage]:
        """Stages turning the kernel blob into the final snapshot."""


class ElfSnapshotStrategy(SnapshotStrategy):
    def stages(self, target: CompileTarget, layout: BuildLayout) -> List[Stage]:
        return [ElfSnapshotStage(target, layout)]


class AppleSnapshotStrategy(SnapshotStrategy):
    def stages(self, target: CompileTarget, layout: BuildLayout) -> List[Stage]:
        return [
            AssemblySnapshotStage(target, layout),
            AssembleObjectStage(target, layout),
            LinkDylibStage(target, layout),
        ]


SNAPSHOT_STRATEGIES: Dict[Platform, SnapshotStrategy] = {
    Platform.ANDROID: ElfSnapshotStrategy(),
    Platform.LINUX: ElfSnapshotStrategy(),
    Platform.WINDOWS: ElfSnapshotStrategy(),
    Platform.IOS: AppleSnapshotStrategy(),
    Platform.MACOS: AppleSnapshotStrategy(),
}


def prepare_stages(*, sync: bool = True, upgrade: bool = False) -> List[Stage]:
    stages: List[Stage] = []
    if sync:
        stages.append(SourceSyncStage())
    stages.append(DependencyStage(upgrade=upgrade))
    return stages


def compile_stages(target: CompileTarget, layout: BuildLayout) -> List[Stage]:
    return [KernelStage(target.opt, layout), *SNAPSHOT_STRATEGIES[target.platform].stages(target, layout)]


def plan_stages(
    target: CompileTarget,
    layout: BuildLayout,
    *,
    sync: bool = True,
    upgrade: bool = False,
) -> List[Stage]:
    return [*prepare_stages(sync=sync, upgrade=upgrade), *compile_stages(target, layout)]


class Pipeline:
    def __init__(self, env: BuildEnv) -> None:
        self.env = env

    def _run_stages(self, stages: Sequence[Stage], label: str) -> None:
        for stage in stages:
            self.env.console.info(f"[{label}] {stage.description}")
            stage.build(self.env)

    def prepare(self, *, sync: bool = True, upgrade: bool = False) -> None:
        self._run_stages(prepare_stages(sync=sync, upgrade=upgrade), "prepare")

    def compile(self, target: CompileTarget, layout: BuildLayout | None = None) -> BuildOutputs:
        layout = layout or BuildLayout.for_target(self.env, target)
        self._run_stages(compile_stages(target, layout), str(target))
        return BuildOutputs(kernel_blob=layout.kernel_blob, depfile=layout.depfile, snapshot=layout.snapshot)

    def run(
        self,
        *,
        prepare: bool = True,
        sync: bool = True,
        upgrade: bool = False,
        target_file: Path | None = None,
    ) -> List[BuildOutputs]:
        """Prepare once, then compile every compile target of the build in order."""
        if prepare:
            self.prepare(sync=sync, upgrade=upgrade)
        outputs: List[BuildOutputs] = []
        for target in self.env.target.compile_targets():
            outputs.append(self.compile(target, BuildLayout.for_target(self.env, target, target_file)))
        return outputs

    def bundle_assets(self) -> Path:
        """Assemble ``flutter_assets`` once per opt level; every arch shares it."""
        flutter_assets = self.env.build_dir() / str(self.env.target.opt) / "flutter_assets"
        self.env.console.info(f"[{self.env.target.opt}] bundle flutter assets")
        self.env.require_flutter().build_flutter_assets(self.env.root_dir, flutter_assets)
        return flutter_assets


__all__ = [
    "APPLE_RPATHS",
    "AppleSnapshotStrategy",
    "Artifact",
    "AssembleObjectStage",
    "AssemblySnapshotStage",
    "BuildLayout",
    "BuildOutputs",
    "DependencyStage",
    "ElfSnapshotStage",
    "ElfSnapshotStrategy",
    "KernelStage",
    "LinkDylibStage",
    "Pipeline",
    "SNAPSHOT_STRATEGIES",
    "SnapshotStrategy",
    "SourceSyncStage",
    "Stage",
    "apple_env",
    "apple_platform_flags",
    "assemble_command",
    "compile_stages",
    "gen_snapshot_command",
    "kernel_command",
    "link_dylib_command",
    "plan_stages",
    "prepare_stages",
]
