from __future__ import annotations

from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock
import io
import tempfile
import unittest

from core.console import Console
from xbuild.cli import main
from xbuild.download import DownloadManager
from xbuild.flutter import Flutter
from xbuild.host import host_target

from tests.helpers import FakeHost, write_flutter_checkout, write_host_engine


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.app = self.root / "app"
        self.app.mkdir()
        (self.app / "pubspec.yaml").write_text("name: demo\n", encoding="utf-8")
        self.git = self.root / "git"
        self.git.write_text("", encoding="utf-8")
        self.cache = self.root / "cache"
        (self.app / "xbuild.toml").write_text(
            f'cache_dir = "{self.cache.as_posix()}"\n\n[tools]\ngit = "{self.git.as_posix()}"\n',
            encoding="utf-8",
        )
        self.host = FakeHost()
        self.patcher = mock.patch("xbuild.env.host_info_provider", return_value=self.host)
        self.patcher.start()

    def tearDown(self) -> None:
        self.patcher.stop()
        self.temp_dir.cleanup()

    def _prepare_engine(self) -> Path:
        repo = self.cache / "flutter"
        write_flutter_checkout(repo)
        flutter = Flutter(
            git=self.git,
            repo=repo,
            cache=self.cache,
            runner=mock.Mock(),
            host=self.host,
            console=Console("none"),
        )
        return write_host_engine(flutter, self.host)

    def test_build_dry_run_prints_compile_commands(self) -> None:
        self._prepare_engine()
        stdout = io.StringIO()
        with redirect_stdout(stdout):
            code = main(["build", "--platform", "android", "--arch", "arm64", "--root", str(self.app), "--dry-run"])

        self.assertEqual(code, 0)
        lines = [line for line in stdout.getvalue().splitlines() if line.startswith("[dry-run]")]
        self.assertEqual(len(lines), 2)
        self.assertIn("frontend_server", lines[0])
        self.assertIn("--snapshot_kind=app-aot-elf", lines[1])

    def test_build_reports_errors(self) -> None:
        stderr = io.StringIO()
        with mock.patch("sys.stderr", stderr):
            code = main(["build", "--platform", "android", "--arch", "arm64", "--root", str(self.root / "missing")])
        self.assertEqual(code, 1)
        self.assertIn("[ERROR] failed to locate", stderr.getvalue())

    def test_prefetch_passes_dex_flag(self) -> None:
        with mock.patch.object(DownloadManager, "prefetch", autospec=True) as prefetch:
            code = main(["prefetch", "--platform", "android", "--arch", "arm64", "--dex", "--root", str(self.app)])

        self.assertEqual(code, 0)
        prefetch.assert_called_once()
        self.assertTrue(prefetch.call_args.kwargs["build_dex"])
        env = prefetch.call_args.args[0].env
        self.assertEqual([str(target) for target in env.target.compile_targets()], ["android-arm64-debug"])
        self.assertEqual(host_target(env.host), host_target(self.host))


if __name__ == "__main__":
    unittest.main()
