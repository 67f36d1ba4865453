"""File access helpers that report failures as ``ResourceError``."""

from __future__ import annotations

from pathlib import Path

from imagelabel.errors import ResourceError


def read_bytes(path: str | Path) -> bytes:
    """Read a whole file as bytes."""
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise ResourceError(path, exc.strerror or str(exc)) from exc


def read_lines(path: str | Path) -> list[str]:
    """Read a UTF-8 text file as a list of lines, without line terminators."""
    try:
        return Path(path).read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise ResourceError(path, exc.strerror or str(exc)) from exc
    except UnicodeDecodeError as exc:
        raise ResourceError(path, f"not valid UTF-8 ({exc.reason})") from exc
