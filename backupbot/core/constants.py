"""
BackupBot - Shared Constants
============================

Centralized constants for the entire codebase.
Import from here instead of defining locally.
"""

from pathlib import Path


# =============================================================================
# Paths
# =============================================================================

ROOT_DIR = Path(__file__).parent.parent.parent
LOGS_DIR = ROOT_DIR / "logs"
DEFAULT_CONFIG_PATH = ROOT_DIR / "backup_config.yml"


# =============================================================================
# Timezone
# =============================================================================

DEFAULT_TIMEZONE = "UTC"


# =============================================================================
# Archive
# =============================================================================

ARCHIVE_SUFFIX = ".tar.gz"
ARCHIVE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
DEFAULT_ARCHIVE_PREFIX = "backup"
HOME_MARKER = "~"


# =============================================================================
# Telegram Limits
# =============================================================================

# Bot API upload ceiling used for channel routing (a little under 20MB)
BOT_UPLOAD_LIMIT = 20971510

TELEGRAM_API_BASE = "https://api.telegram.org"
POLL_TIMEOUT = 30           # Long polling timeout (seconds)
POLL_RETRY_DELAY = 5        # Wait after a failed getUpdates (seconds)
REQUEST_TIMEOUT = 60        # Regular Bot API calls (seconds)
UPLOAD_TIMEOUT = 300        # sendDocument (seconds)
CLIENT_TIMEOUT = 120        # Whole MTProto auth + upload + send (seconds)


# =============================================================================
# Size Divisors
# =============================================================================

KB_DIVISOR = 1024
MB_DIVISOR = 1024 * 1024
GB_DIVISOR = 1024 * 1024 * 1024


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "ROOT_DIR",
    "LOGS_DIR",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_TIMEZONE",
    "ARCHIVE_SUFFIX",
    "ARCHIVE_TIMESTAMP_FORMAT",
    "DEFAULT_ARCHIVE_PREFIX",
    "HOME_MARKER",
    "BOT_UPLOAD_LIMIT",
    "TELEGRAM_API_BASE",
    "POLL_TIMEOUT",
    "POLL_RETRY_DELAY",
    "REQUEST_TIMEOUT",
    "UPLOAD_TIMEOUT",
    "CLIENT_TIMEOUT",
    "KB_DIVISOR",
    "MB_DIVISOR",
    "GB_DIVISOR",
]
