"""Utility functions for netextcap."""

import logging
import os
import sys
from collections.abc import Iterable
from pathlib import Path

from rich.logging import RichHandler

from .exceptions import ValidationError


def is_windows() -> bool:
    """Check if running on the duplex named-pipe platform."""
    return sys.platform == "win32"


def is_executable(path: Path) -> bool:
    """Check if a path is a regular file the current user may execute."""
    try:
        return path.is_file() and os.access(path, os.X_OK)
    except OSError:
        return False


def list_executables(directory: Path) -> list[Path]:
    """List executable entries directly under a directory, in name order.

    A missing or unreadable directory yields an empty list.
    """
    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError:
        return []

    return [Path(entry.path) for entry in entries if is_executable(Path(entry.path))]


def parse_extra_args(pairs: Iterable[str]) -> dict[str, str | None]:
    """Parse operator arguments of the form 'KEY=VALUE' or 'KEY'.

    Keys without a leading dash get '--' prepended, so 'delay=5' and
    '--delay=5' both become {'--delay': '5'}. Order is preserved.
    """
    args: dict[str, str | None] = {}

    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not key or key.strip("-") == "":
            raise ValidationError(f"Invalid helper argument: {pair!r}", "Expected KEY=VALUE")
        if not key.startswith("-"):
            key = f"--{key}"
        args[key] = value if sep else None

    return args


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich."""
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger("netextcap")
    root.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)

    for handler in root.handlers:
        handler.setLevel(level)
