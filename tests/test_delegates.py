from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from core.command_runner import RecordingCommandRunner
from xbuild.android import build_classes_dex, classes_dex_dir
from xbuild.errors import MissingArtifactError
from xbuild.ios import LAUNCHER_SOURCE, build_empty_dylib, build_ios_main
from xbuild.targets import Arch, CompileTarget, Opt, Platform

from tests.helpers import FakeHost, make_env


class AndroidDelegateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.runner = RecordingCommandRunner()
        sdk = self.root / "android-sdk"
        self.android_jar = sdk / "platforms" / "android-33" / "android.jar"
        self.android_jar.parent.mkdir(parents=True)
        self.android_jar.write_bytes(b"jar")
        self.r8 = self.root / "r8.jar"

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _env(self, opt: Opt):
        return make_env(
            self.root,
            platform=Platform.ANDROID,
            opt=opt,
            runner=self.runner,
            flutter=False,
            config={"android_sdk": str(self.root / "android-sdk"), "min_sdk_version": 23},
        )

    def test_runs_d8_against_android_jar(self) -> None:
        self.r8.write_bytes(b"r8")
        env = self._env(Opt.RELEASE)
        embedding = self.root / "flutter_embedding.jar"

        dex = build_classes_dex(env, self.r8, [embedding])

        output = classes_dex_dir(env)
        self.assertEqual(dex, output / "classes.dex")
        self.assertTrue(output.is_dir())
        self.assertEqual(
            self.runner.commands[0].command,
            [
                "java",
                "-cp",
                str(self.r8),
                "com.android.tools.r8.D8",
                "--release",
                "--min-api",
                "23",
                "--lib",
                str(self.android_jar),
                "--output",
                str(output),
                str(embedding),
            ],
        )

    def test_debug_mode(self) -> None:
        self.r8.write_bytes(b"r8")
        build_classes_dex(self._env(Opt.DEBUG), self.r8, [])
        self.assertIn("--debug", self.runner.commands[0].command)

    def test_missing_r8_is_reported(self) -> None:
        with self.assertRaises(MissingArtifactError):
            build_classes_dex(self._env(Opt.DEBUG), self.r8, [])
        self.assertEqual(self.runner.commands, [])


class IosDelegateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.runner = RecordingCommandRunner()
        self.env = make_env(
            self.root,
            platform=Platform.IOS,
            opt=Opt.RELEASE,
            host=FakeHost(Platform.MACOS, Arch.ARM64),
            runner=self.runner,
        )
        self.target = CompileTarget(Platform.IOS, Arch.ARM64, Opt.RELEASE)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_build_ios_main(self) -> None:
        lib = self.root / "libapp.a"
        output = build_ios_main(self.env, self.target, lib)

        source = output.parent / "main.m"
        self.assertEqual(source.read_text(encoding="utf-8"), LAUNCHER_SOURCE)
        record = self.runner.commands[0]
        command = record.command
        self.assertEqual(command[:3], ["clang", "-arch", "arm64"])
        self.assertEqual(command[command.index("-F") + 1], str(self.env.require_flutter().engine_dir(self.target)))
        self.assertIn(str(lib), command)
        self.assertEqual(command[command.index("-o") + 1], str(output))
        self.assertIn("-miphoneos-version-min=9.0", command)
        self.assertEqual(record.env, {"SDKROOT": str(self.env.ios_sdk())})

    def test_build_empty_dylib(self) -> None:
        output = build_empty_dylib(self.env, self.target)

        command = self.runner.commands[0].command
        self.assertEqual(output.name, "App")
        self.assertIn("-dynamiclib", command)
        self.assertEqual(command[command.index("-install_name") + 1], "@rpath/App.framework/App")
        self.assertIn(str(output.parent / "empty.c"), command)
        self.assertTrue((output.parent / "empty.c").is_file())


if __name__ == "__main__":
    unittest.main()
