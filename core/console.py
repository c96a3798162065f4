"""Console output with levels and byte-level progress reporting."""
from __future__ import annotations

from typing import TextIO
import sys


class Progress:
    """Byte counter printed on a single, repeatedly rewritten line.

    A ``total`` of zero means the length is unknown.
    """

    def __init__(self, label: str, total: int, *, enabled: bool, stream: TextIO | None = None) -> None:
        self.label = label
        self.total = max(0, total)
        self.done = 0
        self._enabled = enabled
        self._stream = stream

    def _render(self, message: str) -> None:
        if not self._enabled:
            return
        stream = self._stream or sys.stdout
        total = str(self.total) if self.total else "?"
        stream.write(f"\r{self.label} {self.done}/{total} {message}".rstrip())
        stream.flush()

    def update(self, count: int) -> None:
        self.done += count
        self._render("downloading")

    def finish(self, message: str = "downloaded") -> None:
        self._render(message)
        if self._enabled:
            (self._stream or sys.stdout).write("\n")


class Console:
    """Simple console output handler with configurable log level.

    Levels: none < error < info < debug
    Default: 'info'
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(self, level: str = "info", *, stream: TextIO | None = None) -> None:
        if level not in self.LEVELS:
            raise ValueError(f"Unknown console level '{level}'")
        self.level_name = level
        self.level = self.LEVELS[level]
        self._stream = stream

    @property
    def verbose(self) -> bool:
        return self.level >= self.LEVELS["debug"]

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"[INFO] {message}", file=self._stream or sys.stdout)

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"[ERROR] {message}", file=self._stream or sys.stderr)

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"[DEBUG] {message}", file=self._stream or sys.stdout)

    def progress(self, label: str, total: int) -> Progress:
        return Progress(label, total, enabled=self.level >= self.LEVELS["info"], stream=self._stream)


__all__ = ["Console", "Progress"]
