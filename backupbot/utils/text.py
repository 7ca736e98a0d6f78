"""
BackupBot - Text Utilities
==========================

Shared formatting helpers for logs and chat messages.
"""

import html

from backupbot.core.constants import GB_DIVISOR, KB_DIVISOR, MB_DIVISOR


def format_size(size_bytes: int) -> str:
    """Format file size to appropriate unit (B, KB, MB, GB)."""
    if size_bytes >= GB_DIVISOR:
        return f"{size_bytes / GB_DIVISOR:.2f} GB"
    elif size_bytes >= MB_DIVISOR:
        return f"{size_bytes / MB_DIVISOR:.1f} MB"
    elif size_bytes >= KB_DIVISOR:
        return f"{size_bytes / KB_DIVISOR:.1f} KB"
    return f"{size_bytes} B"


def truncate(text: str, limit: int = 100) -> str:
    """Cut text to `limit` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def code(text: object) -> str:
    """Wrap text in an HTML <code> tag, escaping it."""
    return f"<code>{html.escape(str(text))}</code>"


__all__ = ["format_size", "truncate", "code"]
