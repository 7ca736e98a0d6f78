"""Path helpers for configured backup sources."""

import os
from pathlib import Path

from backupbot.core.constants import HOME_MARKER


def resolve_path(path: str) -> str:
    """
    Expand a leading ``~`` to the home directory and make the path absolute.

    The input is returned unchanged when the home directory is unknown.
    """
    if path.startswith(HOME_MARKER):
        try:
            home = str(Path.home())
        except (RuntimeError, KeyError):
            return path
        path = path.replace(HOME_MARKER, home, 1)
    return os.path.abspath(path)


def base_name(path: str) -> str:
    """Last path component, ignoring trailing separators ("/data/" -> "data")."""
    if not path:
        return "."
    stripped = path.rstrip(os.sep)
    if not stripped:
        return os.sep
    return os.path.basename(stripped)


def archive_join(root: str, relative: str) -> str:
    """Join an archive root and a relative path with forward slashes."""
    parts = [p for p in root.replace(os.sep, "/").split("/") if p]
    parts.extend(p for p in relative.replace(os.sep, "/").split("/") if p and p != ".")
    return "/".join(parts)


__all__ = ["resolve_path", "base_name", "archive_join"]
