"""
BackupBot - Exclusion Matcher
=============================

Decides whether a path is left out of the archive.

Each pattern is tried against the path's base name (exact, then glob)
and then against the full path. Glob rules are those of shell path
matching: ``*`` and ``?`` stop at ``/``, ``[...]`` classes accept ranges
and ``!``/``^`` negation, ``\\`` escapes. A malformed pattern matches
nothing instead of failing the run.
"""

import os
import re
from functools import lru_cache
from typing import Iterable, Tuple

from backupbot.services.backup.paths import base_name


class PatternError(ValueError):
    """Glob pattern cannot be parsed."""


def _class_char(pattern: str, i: int) -> Tuple[str, int]:
    if i >= len(pattern):
        raise PatternError("unclosed character class")
    c = pattern[i]
    if c == "\\":
        i += 1
        if i >= len(pattern):
            raise PatternError("trailing escape")
        return pattern[i], i + 1
    if c in "-]":
        raise PatternError(f"unexpected {c!r} in character class")
    return c, i + 1


def _parse_class(pattern: str, i: int) -> Tuple[str, int]:
    """Parse a [...] class starting right after the '['. Returns (regex, next index)."""
    negate = False
    if i < len(pattern) and pattern[i] in "!^":
        negate = True
        i += 1

    items = []
    while True:
        if i >= len(pattern):
            raise PatternError("unclosed character class")
        if pattern[i] == "]":
            i += 1
            break
        lo, i = _class_char(pattern, i)
        hi = lo
        if i < len(pattern) and pattern[i] == "-":
            hi, i = _class_char(pattern, i + 1)
            if hi < lo:
                raise PatternError(f"inverted range {lo}-{hi}")
        items.append(re.escape(lo) if lo == hi else f"{re.escape(lo)}-{re.escape(hi)}")

    if not items:
        raise PatternError("empty character class")
    return "[" + ("^" if negate else "") + "".join(items) + "]", i


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> "re.Pattern[str]":
    """Translate a glob into an anchored regex. Raises PatternError."""
    sep = re.escape(os.sep)
    parts = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        i += 1
        if c == "*":
            parts.append(f"[^{sep}]*")
        elif c == "?":
            parts.append(f"[^{sep}]")
        elif c == "\\":
            if i >= len(pattern):
                raise PatternError("trailing escape")
            parts.append(re.escape(pattern[i]))
            i += 1
        elif c == "[":
            regex, i = _parse_class(pattern, i)
            parts.append(regex)
        else:
            parts.append(re.escape(c))
    return re.compile("".join(parts) + r"\Z", re.DOTALL)


def glob_match(pattern: str, name: str) -> bool:
    """Whole-string glob match; malformed patterns never match."""
    try:
        regex = compile_pattern(pattern)
    except PatternError:
        return False
    return regex.match(name) is not None


def is_excluded(path: str, patterns: Iterable[str]) -> bool:
    """True when any pattern matches the base name or the full path."""
    base = base_name(path)
    for pattern in patterns:
        if pattern == base:
            return True
        if glob_match(pattern, base):
            return True
        if glob_match(pattern, path):
            return True
    return False


__all__ = ["PatternError", "compile_pattern", "glob_match", "is_excluded"]
