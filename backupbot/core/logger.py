"""
BackupBot - Logger
==================

Tree-style console logging with optional log files.
"""

from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from backupbot.core.constants import DEFAULT_TIMEZONE, LOGS_DIR


# ANSI colors
RESET = "\033[0m"
BOLD = "\033[1m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
CYAN = "\033[96m"
GRAY = "\033[90m"


class Logger:
    """Tree-style logger with colors."""

    def __init__(self):
        self.timezone = ZoneInfo(DEFAULT_TIMEZONE)
        self.log_file = LOGS_DIR / "bot.log"
        self.error_file = LOGS_DIR / "bot_error.log"
        self.file_enabled = False

    def configure(self, log_file: bool = False, timezone: Optional[ZoneInfo] = None) -> None:
        """Apply settings from the loaded config."""
        if timezone is not None:
            self.timezone = timezone
        self.file_enabled = log_file
        if log_file:
            LOGS_DIR.mkdir(exist_ok=True)

    def _timestamp(self) -> str:
        """Get formatted timestamp."""
        now = datetime.now(self.timezone)
        return now.strftime("%Y.%m.%d %H:%M:%S %Z")

    def _write_file(self, message: str, error: bool = False) -> None:
        """Write to log file."""
        if not self.file_enabled:
            return
        try:
            with open(self.error_file if error else self.log_file, "a") as f:
                f.write(message + "\n")
        except Exception:
            pass

    def _format_tree(self, items: Sequence[Tuple[str, Any]]) -> str:
        """Format items as a tree."""
        if not items:
            return ""
        lines = []
        for i, (key, value) in enumerate(items):
            prefix = "└─" if i == len(items) - 1 else "├─"
            lines.append(f"  {prefix} {key}: {value}")
        return "\n".join(lines)

    def tree(self, title: str, items: List[Tuple[str, Any]], emoji: str = "ℹ️") -> None:
        """Log with tree format."""
        timestamp = self._timestamp()
        tree_str = self._format_tree(items)

        # Console output with colors
        console_msg = f"{GRAY}[{timestamp}]{RESET} {emoji} {BOLD}{title}{RESET}"
        if tree_str:
            console_msg += f"\n{CYAN}{tree_str}{RESET}"
        print(console_msg)

        # File output without colors
        file_msg = f"[{timestamp}] {emoji} {title}"
        if tree_str:
            file_msg += f"\n{tree_str}"
        self._write_file(file_msg, error=emoji in ("❌", "⚠️", "🚨"))

    def info(self, message: str) -> None:
        """Log info message."""
        timestamp = self._timestamp()
        print(f"{GRAY}[{timestamp}]{RESET} {BLUE}ℹ️{RESET} {message}")
        self._write_file(f"[{timestamp}] ℹ️ {message}")

    def success(self, message: str) -> None:
        """Log success message."""
        timestamp = self._timestamp()
        print(f"{GRAY}[{timestamp}]{RESET} {GREEN}✅{RESET} {message}")
        self._write_file(f"[{timestamp}] ✅ {message}")

    def warning(self, message: str) -> None:
        """Log warning message."""
        timestamp = self._timestamp()
        print(f"{GRAY}[{timestamp}]{RESET} {YELLOW}⚠️{RESET} {message}")
        self._write_file(f"[{timestamp}] ⚠️ {message}", error=True)

    def error(self, message: str) -> None:
        """Log error message."""
        timestamp = self._timestamp()
        print(f"{GRAY}[{timestamp}]{RESET} {RED}❌{RESET} {message}")
        self._write_file(f"[{timestamp}] ❌ {message}", error=True)


log = Logger()
