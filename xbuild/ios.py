"""iOS delegate hooks: the launcher executable and framework scaffolding."""
from __future__ import annotations

from pathlib import Path
from typing import List

from .env import BuildEnv
from .pipeline import apple_env, apple_platform_flags, link_dylib_command
from .targets import CompileTarget
from .toolchain import invoke

LAUNCHER_SOURCE = """\
#import <Flutter/Flutter.h>
#import <UIKit/UIKit.h>

@interface AppDelegate : FlutterAppDelegate
@end

@implementation AppDelegate
@end

int main(int argc, char* argv[]) {
  @autoreleasepool {
    return UIApplicationMain(argc, argv, nil, NSStringFromClass([AppDelegate class]));
  }
}
"""

EMPTY_SOURCE = "void __xbuild_empty(void) {}\n"


def ios_main_command(
    env: BuildEnv,
    target: CompileTarget,
    *,
    source: Path,
    output: Path,
    lib: Path | None = None,
) -> List[str]:
    flutter = env.require_flutter()
    command = [
        env.config.tools.command("clang"),
        "-arch",
        target.arch.apple_name,
        "-fobjc-arc",
        "-F",
        str(flutter.engine_dir(target)),
        "-framework",
        "Flutter",
        "-framework",
        "UIKit",
        "-Xlinker",
        "-rpath",
        "-Xlinker",
        "@executable_path/Frameworks",
    ]
    if lib is not None:
        command.append(str(lib))
    command += ["-o", str(output), str(source)]
    command += apple_platform_flags(target, sdkroot=env.ios_sdk(), ios_min_version=env.config.ios_min_version)
    return command


def build_ios_main(env: BuildEnv, target: CompileTarget, lib: Path | None = None) -> Path:
    """Compile the launcher executable, optionally linking *lib* into it."""
    out_dir = env.target_dir(target)
    out_dir.mkdir(parents=True, exist_ok=True)
    source = out_dir / "main.m"
    source.write_text(LAUNCHER_SOURCE, encoding="utf-8")
    output = out_dir / "main"
    command = ios_main_command(env, target, source=source, output=output, lib=lib)
    invoke(env.runner, command, env=apple_env(target, env.ios_sdk()), note="clang", verbose=env.verbose)
    return output


def build_empty_dylib(env: BuildEnv, target: CompileTarget) -> Path:
    """Link a placeholder ``App`` library so a debug framework bundle is loadable."""
    out_dir = env.target_dir(target) / "empty"
    out_dir.mkdir(parents=True, exist_ok=True)
    source = out_dir / "empty.c"
    source.write_text(EMPTY_SOURCE, encoding="utf-8")
    output = out_dir / "App"
    sdkroot = env.ios_sdk()
    command = link_dylib_command(
        env.config.tools.command("clang"),
        target,
        objects=[source],
        output=output,
        sdkroot=sdkroot,
        ios_min_version=env.config.ios_min_version,
    )
    invoke(env.runner, command, env=apple_env(target, sdkroot), note="clang", verbose=env.verbose)
    return output


__all__ = ["build_empty_dylib", "build_ios_main", "ios_main_command"]
