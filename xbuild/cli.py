"""Command line interface for the xbuild tool."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable, List
import sys

from core.command_runner import RecordingCommandRunner, SubprocessCommandRunner
from core.console import Console

from .android import build_classes_dex
from .download import DownloadManager
from .env import BuildEnv
from .errors import XBuildError
from .pipeline import Pipeline
from .targets import Arch, BuildTarget, Opt, Platform


def _make_runner(dry_run: bool) -> SubprocessCommandRunner | RecordingCommandRunner:
    return RecordingCommandRunner() if dry_run else SubprocessCommandRunner()


def _emit_dry_run_output(runner: RecordingCommandRunner, *, workspace: Path) -> None:
    for line in runner.iter_formatted(workspace=workspace):
        print(line)


def _build_target(args: Namespace) -> BuildTarget:
    platform = Platform(args.platform) if args.platform else Platform.host()
    archs: List[Arch] = [Arch(value) for value in args.arch] if args.arch else [Arch.host()]
    return BuildTarget.create(platform, Opt(args.opt), archs)


def _make_env(args: Namespace, runner: SubprocessCommandRunner | RecordingCommandRunner) -> BuildEnv:
    console = Console("debug" if args.verbose else "info")
    return BuildEnv.new(
        target=_build_target(args),
        root_dir=Path(args.root),
        runner=runner,
        console=console,
    )


def _add_target_arguments(parser: ArgumentParser) -> None:
    parser.add_argument(
        "--platform",
        choices=[platform.value for platform in Platform],
        help="Target platform (defaults to the host platform)",
    )
    parser.add_argument(
        "--arch",
        action="append",
        default=[],
        choices=[arch.value for arch in Arch],
        help="Target architecture; repeat for several (defaults to the host architecture)",
    )
    parser.add_argument(
        "--opt",
        choices=[opt.value for opt in Opt],
        default=Opt.DEBUG.value,
        help="Optimization level",
    )
    parser.add_argument("--dex", action="store_true", help="Fetch and run the Android dex tooling")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("-r", "--root", default=".", help="Application root directory")


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="xbuild", description="Cross-platform application build orchestrator")
    subparsers = parser.add_subparsers(dest="command", required=True)

    prefetch_parser = subparsers.add_parser("prefetch", help="Download SDKs and engine artifacts for a target")
    _add_target_arguments(prefetch_parser)

    build_parser = subparsers.add_parser("build", help="Compile the application snapshot for a target")
    _add_target_arguments(build_parser)
    build_parser.add_argument("--upgrade", action="store_true", help="Upgrade dart packages instead of resolving them")
    build_parser.add_argument("--no-sync", action="store_true", help="Do not pull the flutter checkout")
    build_parser.add_argument("-t", "--target-file", help="Application entry file relative to the root")
    build_parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Print compile commands without executing them (skips fetching and source sync)",
    )

    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(argv if argv is not None else sys.argv[1:])

    if args.command == "prefetch":
        return _handle_prefetch(args)
    if args.command == "build":
        return _handle_build(args)
    raise ValueError(f"Unknown command: {args.command}")


def _handle_prefetch(args: Namespace) -> int:
    console = Console("debug" if args.verbose else "info")
    try:
        env = _make_env(args, _make_runner(False))
        DownloadManager(env).prefetch(build_dex=args.dex)
    except XBuildError as exc:
        console.error(str(exc))
        return 1
    return 0


def _handle_build(args: Namespace) -> int:
    console = Console("debug" if args.verbose else "info")
    runner = _make_runner(args.dry_run)
    target_file = Path(args.target_file) if args.target_file else None
    try:
        env = _make_env(args, runner)
        pipeline = Pipeline(env)
        if args.dry_run:
            pipeline.run(prepare=False, target_file=target_file)
        else:
            manager = DownloadManager(env)
            manager.prefetch(build_dex=args.dex)
            outputs = pipeline.run(sync=not args.no_sync, upgrade=args.upgrade, target_file=target_file)
            for output in outputs:
                console.info(f"Built {output.snapshot}")
            console.info(f"Built {pipeline.bundle_assets()}")
            if args.dex and env.target.platform is Platform.ANDROID:
                dex = build_classes_dex(env, manager.r8_jar(), [manager.flutter_embedding_jar()])
                console.info(f"Built {dex}")
    except XBuildError as exc:
        console.error(str(exc))
        return 1

    if isinstance(runner, RecordingCommandRunner):
        _emit_dry_run_output(runner, workspace=env.root_dir)
    return 0


__all__ = ["main"]
