from __future__ import annotations

from pathlib import Path
from unittest import mock
import tempfile
import unittest

from core.command_runner import RecordingCommandRunner
from xbuild.errors import ToolInvocationError
from xbuild.host import GenericHostInfo, LinuxHostInfo, host_info_provider, host_target, parse_os_release
from xbuild.targets import Arch, CompileTarget, Opt, Platform

from tests.helpers import FakeHost

OS_RELEASE = """\
NAME="Fedora Linux"
VERSION_ID=39
# comment
ID=fedora
"""


class HostInfoTests(unittest.TestCase):
    def test_host_target_is_debug(self) -> None:
        target = host_target(FakeHost(Platform.MACOS, Arch.ARM64))
        self.assertEqual(target, CompileTarget(Platform.MACOS, Arch.ARM64, Opt.DEBUG))

    def test_parse_os_release(self) -> None:
        values = parse_os_release(OS_RELEASE)
        self.assertEqual(values["NAME"], "Fedora Linux")
        self.assertEqual(values["VERSION_ID"], "39")
        self.assertNotIn("# comment", values)

    def test_generic_provider(self) -> None:
        host = GenericHostInfo()
        self.assertEqual(host.name(), "host")
        self.assertEqual(host.details(), "")

    def test_linux_provider_uses_uname_and_os_release(self) -> None:
        runner = RecordingCommandRunner()
        runner.respond("uname", "-r", stdout="6.5.6-300.fc39.x86_64\n")
        runner.respond("uname", stdout="Linux\n")
        with tempfile.TemporaryDirectory() as temp:
            os_release = Path(temp) / "os-release"
            os_release.write_text(OS_RELEASE, encoding="utf-8")
            host = LinuxHostInfo(runner, os_release)

            self.assertEqual(host.name(), "Linux")
            self.assertEqual(host.details(), "Fedora Linux 6.5.6-300.fc39.x86_64")

    def test_linux_provider_reports_uname_failure(self) -> None:
        runner = RecordingCommandRunner()
        runner.respond("uname", returncode=127, stderr="not found")
        host = LinuxHostInfo(runner, Path("/nonexistent/os-release"))
        with self.assertRaises(ToolInvocationError):
            host.name()

    def test_provider_selection(self) -> None:
        runner = RecordingCommandRunner()
        with mock.patch("sys.platform", "linux"):
            self.assertIsInstance(host_info_provider(runner), LinuxHostInfo)
        with mock.patch("sys.platform", "darwin"):
            provider = host_info_provider(runner)
            self.assertIsInstance(provider, GenericHostInfo)
            self.assertNotIsInstance(provider, LinuxHostInfo)


if __name__ == "__main__":
    unittest.main()
