"""Archive extraction utilities reusable across projects."""
from __future__ import annotations

from pathlib import Path
from typing import Callable, Protocol, runtime_checkable
import tarfile
import zipfile

import zstandard as zstd

_SUFFIX_FORMATS: list[tuple[str, str]] = [
    (".tar.zst", "zst"),
    (".tzst", "zst"),
    (".tar", "tar"),
    (".zip", "zip"),
]

_FORMAT_ALIASES: dict[str, str] = {
    "zst": "zst",
    "tar.zst": "zst",
    "tzst": "zst",
    "tar": "tar",
    "zip": "zip",
}

EntryFilter = Callable[[tarfile.TarInfo], bool]
"""Predicate returning ``True`` for tar entries that must be skipped."""


@runtime_checkable
class ArchiveConsole(Protocol):
    """Minimal console interface required by :class:`ArchiveManager`."""

    def debug(self, message: str) -> None:
        ...


def resolve_archive_format(path: Path | str, format_hint: str | None = None) -> str | None:
    """Return the archive format for *path*, or ``None`` for plain files."""

    if format_hint:
        normalized = format_hint.strip().lower()
        if normalized in _FORMAT_ALIASES:
            return _FORMAT_ALIASES[normalized]
        raise ValueError(f"Unsupported archive format hint '{format_hint}'")

    filename = Path(path).name.lower()
    for suffix, fmt in sorted(_SUFFIX_FORMATS, key=lambda item: len(item[0]), reverse=True):
        if filename.endswith(suffix):
            return fmt
    return None


class ArchiveManager:
    """Extract tar, zstd-compressed tar and zip archives."""

    def __init__(self, console: ArchiveConsole) -> None:
        self._console = console

    def extract_archive(
        self,
        *,
        archive_path: Path | str,
        destination_dir: Path | str,
        format_hint: str | None = None,
        skip: EntryFilter | None = None,
    ) -> None:
        """Extract an archive to a destination directory.

        Parameters
        ----------
        archive_path:
            Path to the archive file.
        destination_dir:
            Directory where contents should be extracted. Created when missing.
        format_hint:
            Optional explicit archive format.
        skip:
            Optional per-entry predicate for tar based formats. Entries for
            which it returns ``True`` are not written.
        """
        archive = Path(archive_path).expanduser()
        dest = Path(destination_dir).expanduser()

        if not archive.exists():
            raise FileNotFoundError(f"Archive '{archive}' does not exist")

        archive_format = resolve_archive_format(archive, format_hint)
        if archive_format is None:
            raise ValueError(f"Unable to determine archive format of '{archive}'")

        dest.mkdir(parents=True, exist_ok=True)
        if archive_format == "zst":
            self._extract_zst(archive, dest, skip)
        elif archive_format == "tar":
            with archive.open("rb") as handle:
                with tarfile.open(fileobj=handle, mode="r|") as tar:
                    self._extract_members(tar, dest, skip)
        elif archive_format == "zip":
            with zipfile.ZipFile(archive, "r") as zip_ref:
                zip_ref.extractall(dest)
        else:
            raise ValueError(f"Unsupported archive format: {archive_format}")

        self._console.debug(f"Extracted {archive} to {dest}")

    def _extract_zst(self, archive: Path, dest: Path, skip: EntryFilter | None) -> None:
        dctx = zstd.ZstdDecompressor()
        with archive.open("rb") as ifh:
            with dctx.stream_reader(ifh) as reader:
                with tarfile.open(fileobj=reader, mode="r|") as tar:
                    self._extract_members(tar, dest, skip)

    def _extract_members(self, tar: tarfile.TarFile, dest: Path, skip: EntryFilter | None) -> None:
        # Streamed archives must be consumed strictly in order.
        for member in tar:
            if skip is not None and skip(member):
                self._console.debug(f"Skipping archive entry {member.name}")
                continue
            tar.extract(member, path=dest, filter="tar")


__all__ = [
    "ArchiveConsole",
    "ArchiveManager",
    "EntryFilter",
    "resolve_archive_format",
]
