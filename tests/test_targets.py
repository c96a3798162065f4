from __future__ import annotations

from unittest import mock
import unittest

from xbuild.errors import PlatformDetectionError
from xbuild.targets import Arch, BuildTarget, CompileTarget, Opt, Platform


class TargetModelTests(unittest.TestCase):
    def test_compile_target_equality_uses_all_fields(self) -> None:
        target = CompileTarget(Platform.ANDROID, Arch.ARM64, Opt.RELEASE)
        self.assertEqual(target, CompileTarget(Platform.ANDROID, Arch.ARM64, Opt.RELEASE))
        self.assertNotEqual(target, CompileTarget(Platform.ANDROID, Arch.ARM64, Opt.DEBUG))
        self.assertNotEqual(target, CompileTarget(Platform.ANDROID, Arch.X64, Opt.RELEASE))
        self.assertNotEqual(target, CompileTarget(Platform.LINUX, Arch.ARM64, Opt.RELEASE))
        self.assertEqual(len({target, CompileTarget(Platform.ANDROID, Arch.ARM64, Opt.RELEASE)}), 1)

    def test_compile_target_is_immutable(self) -> None:
        target = CompileTarget(Platform.IOS, Arch.ARM64, Opt.DEBUG)
        with self.assertRaises(AttributeError):
            target.opt = Opt.RELEASE  # type: ignore[misc]

    def test_string_forms(self) -> None:
        self.assertEqual(str(CompileTarget(Platform.WINDOWS, Arch.X64, Opt.RELEASE)), "windows-x64-release")
        self.assertEqual(Arch.X64.apple_name, "x86_64")
        self.assertEqual(Arch.ARM64.apple_name, "arm64")

    def test_platform_families(self) -> None:
        self.assertTrue(Platform.IOS.is_apple)
        self.assertTrue(Platform.MACOS.is_apple)
        self.assertFalse(Platform.ANDROID.is_apple)
        self.assertTrue(Platform.WINDOWS.is_elf)
        self.assertFalse(Platform.IOS.is_elf)

    def test_host_platform_detection(self) -> None:
        with mock.patch("sys.platform", "linux"):
            self.assertIs(Platform.host(), Platform.LINUX)
        with mock.patch("sys.platform", "darwin"):
            self.assertIs(Platform.host(), Platform.MACOS)
        with mock.patch("sys.platform", "win32"):
            self.assertIs(Platform.host(), Platform.WINDOWS)
        with mock.patch("sys.platform", "sunos5"):
            with self.assertRaises(PlatformDetectionError):
                Platform.host()

    def test_host_arch_detection(self) -> None:
        with mock.patch("platform.machine", return_value="AMD64"):
            self.assertIs(Arch.host(), Arch.X64)
        with mock.patch("platform.machine", return_value="aarch64"):
            self.assertIs(Arch.host(), Arch.ARM64)
        with mock.patch("platform.machine", return_value="riscv64"):
            with self.assertRaises(PlatformDetectionError):
                Arch.host()

    def test_build_target_yields_one_compile_target_per_arch(self) -> None:
        target = BuildTarget.create(Platform.ANDROID, Opt.RELEASE, [Arch.ARM64, Arch.X64, Arch.ARM64])
        self.assertEqual(
            list(target.compile_targets()),
            [
                CompileTarget(Platform.ANDROID, Arch.ARM64, Opt.RELEASE),
                CompileTarget(Platform.ANDROID, Arch.X64, Opt.RELEASE),
            ],
        )

    def test_build_target_requires_an_arch(self) -> None:
        with self.assertRaises(ValueError):
            BuildTarget.create(Platform.ANDROID, Opt.DEBUG, [])


if __name__ == "__main__":
    unittest.main()
