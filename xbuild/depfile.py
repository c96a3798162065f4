"""Makefile-style dependency files written by the kernel compiler."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List


@dataclass(slots=True)
class Depfile:
    outputs: List[Path] = field(default_factory=list)
    inputs: List[Path] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> "Depfile":
        """Parse ``out1 out2: in1 in2`` with ``\\ `` escaped spaces and line continuations."""
        joined = text.replace("\\\r\n", " ").replace("\\\n", " ")
        depfile = cls()
        for line in joined.splitlines():
            tokens = _split(line)
            if not tokens:
                continue
            outputs: List[str] = []
            inputs: List[str] = []
            seen_colon = False
            for token in tokens:
                if not seen_colon and token.endswith(":"):
                    seen_colon = True
                    if token[:-1]:
                        outputs.append(token[:-1])
                elif seen_colon:
                    inputs.append(token)
                else:
                    outputs.append(token)
            if not seen_colon:
                raise ValueError(f"malformed depfile line: {line!r}")
            depfile.outputs.extend(Path(item) for item in outputs)
            depfile.inputs.extend(Path(item) for item in inputs)
        return depfile

    @classmethod
    def read(cls, path: Path) -> "Depfile":
        return cls.parse(path.read_text(encoding="utf-8"))


def _split(line: str) -> List[str]:
    tokens: List[str] = []
    current: List[str] = []
    index = 0
    while index < len(line):
        char = line[index]
        if char == "\\" and index + 1 < len(line) and line[index + 1] in " \\#":
            current.append(line[index + 1])
            index += 2
            continue
        if char.isspace():
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(char)
        index += 1
    if current:
        tokens.append("".join(current))
    return tokens


def is_stale(depfile: Path, output: Path) -> bool:
    """``True`` when *output* must be rebuilt according to *depfile*."""
    if not output.exists() or not depfile.exists():
        return True
    try:
        parsed = Depfile.read(depfile)
    except ValueError:
        return True
    built_at = output.stat().st_mtime
    for source in parsed.inputs:
        if not source.exists() or source.stat().st_mtime > built_at:
            return True
    return False


__all__ = ["Depfile", "is_stale"]
