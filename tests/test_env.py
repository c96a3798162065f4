from __future__ import annotations

from pathlib import Path
from unittest import mock
import tempfile
import unittest

from core.command_runner import RecordingCommandRunner
from core.console import Console
from xbuild.env import BuildEnv
from xbuild.errors import MissingArtifactError, ToolNotFoundError
from xbuild.targets import Arch, BuildTarget, CompileTarget, Opt, Platform

from tests.helpers import FakeHost, make_env


class BuildEnvTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _target(self) -> BuildTarget:
        return BuildTarget.create(Platform.ANDROID, Opt.DEBUG, [Arch.ARM64])

    def test_paths_are_partitioned_by_target(self) -> None:
        env = make_env(self.root, flutter=False)
        arm = env.target_dir(CompileTarget(Platform.ANDROID, Arch.ARM64, Opt.DEBUG))
        x64 = env.target_dir(CompileTarget(Platform.ANDROID, Arch.X64, Opt.DEBUG))

        self.assertEqual(arm, self.root / "build" / "debug" / "android" / "arm64")
        self.assertNotEqual(arm, x64)
        self.assertEqual(env.download_dir(), self.root / "cache" / "download")
        self.assertEqual(env.windows_sdk(), self.root / "cache" / "Windows.sdk")
        self.assertEqual(env.android_ndk(), self.root / "cache" / "Android.ndk")

    def test_android_jar_requires_sdk(self) -> None:
        with mock.patch.dict("os.environ", {"ANDROID_HOME": "", "ANDROID_SDK_ROOT": ""}, clear=False):
            env = make_env(self.root, flutter=False)
        with self.assertRaises(MissingArtifactError):
            env.android_jar()

        env = make_env(self.root, flutter=False, config={"android_sdk": str(self.root / "sdk")})
        self.assertEqual(env.android_jar(), self.root / "sdk" / "platforms" / "android-33" / "android.jar")

    def test_require_flutter_without_manifest(self) -> None:
        env = make_env(self.root, flutter=False)
        with self.assertRaises(MissingArtifactError):
            env.require_flutter()

    def test_new_rejects_missing_root(self) -> None:
        with self.assertRaises(MissingArtifactError):
            BuildEnv.new(target=self._target(), root_dir=self.root / "missing")

    def test_new_without_manifest_skips_flutter(self) -> None:
        env = BuildEnv.new(
            target=self._target(),
            root_dir=self.root,
            runner=RecordingCommandRunner(),
            console=Console("none"),
            host=FakeHost(),
        )
        self.assertIsNone(env.flutter)
        self.assertFalse(env.verbose)
        self.assertEqual(env.build_dir(), self.root.resolve() / "target" / "x")

    def test_new_locates_git_for_flutter_apps(self) -> None:
        (self.root / "pubspec.yaml").write_text("name: demo\n", encoding="utf-8")
        git = self.root / "bin" / "git"
        git.parent.mkdir()
        git.write_text("", encoding="utf-8")
        (self.root / "xbuild.toml").write_text(
            f'cache_dir = "cache"\n\n[tools]\ngit = "{git.as_posix()}"\n',
            encoding="utf-8",
        )
        env = BuildEnv.new(
            target=self._target(),
            root_dir=self.root,
            runner=RecordingCommandRunner(),
            console=Console("debug"),
            host=FakeHost(),
        )

        flutter = env.require_flutter()
        self.assertEqual(flutter.git, git)
        self.assertEqual(flutter.root(), (self.root / "cache").resolve() / "flutter")
        self.assertTrue(env.verbose)
        self.assertEqual(self.root.resolve().joinpath("cache"), env.cache_dir())

    def test_missing_git_is_reported(self) -> None:
        (self.root / "pubspec.yaml").write_text("name: demo\n", encoding="utf-8")
        (self.root / "xbuild.toml").write_text('[tools]\ngit = "/nonexistent/git"\n', encoding="utf-8")
        with self.assertRaises(ToolNotFoundError):
            BuildEnv.new(target=self._target(), root_dir=self.root, host=FakeHost())


if __name__ == "__main__":
    unittest.main()
