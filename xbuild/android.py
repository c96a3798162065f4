"""Android delegate hooks feeding the packaging stage."""
from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from .env import BuildEnv
from .errors import MissingArtifactError
from .targets import Opt
from .toolchain import invoke

D8_MAIN_CLASS = "com.android.tools.r8.D8"


def classes_dex_dir(env: BuildEnv) -> Path:
    return env.build_dir() / str(env.target.opt) / "android" / "classes"


def d8_command(
    java: str,
    *,
    r8: Path,
    opt: Opt,
    min_sdk_version: int,
    android_jar: Path,
    output: Path,
    deps: Sequence[Path],
) -> List[str]:
    mode = "--release" if opt is Opt.RELEASE else "--debug"
    return [
        java,
        "-cp",
        str(r8),
        D8_MAIN_CLASS,
        mode,
        "--min-api",
        str(min_sdk_version),
        "--lib",
        str(android_jar),
        "--output",
        str(output),
        *[str(dep) for dep in deps],
    ]


def build_classes_dex(env: BuildEnv, r8: Path, deps: Sequence[Path]) -> Path:
    """Dex the given jars into ``classes.dex`` and return its path."""
    if not r8.is_file():
        raise MissingArtifactError(r8, "run prefetch with build_dex enabled")
    android_jar = env.android_jar()
    if not android_jar.is_file():
        raise MissingArtifactError(android_jar)
    output = classes_dex_dir(env)
    output.mkdir(parents=True, exist_ok=True)
    command = d8_command(
        env.config.tools.command("java"),
        r8=r8,
        opt=env.target.opt,
        min_sdk_version=env.config.min_sdk_version,
        android_jar=android_jar,
        output=output,
        deps=deps,
    )
    invoke(env.runner, command, note="d8", verbose=env.verbose)
    return output / "classes.dex"


__all__ = ["D8_MAIN_CLASS", "build_classes_dex", "classes_dex_dir", "d8_command"]
