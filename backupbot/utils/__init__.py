"""BackupBot - Utils Package."""

from backupbot.utils.async_utils import create_safe_task, gather_with_logging
from backupbot.utils.http import HTTPSessionManager
from backupbot.utils.text import code, format_size, truncate

__all__ = [
    "HTTPSessionManager",
    "create_safe_task",
    "gather_with_logging",
    "code",
    "format_size",
    "truncate",
]
