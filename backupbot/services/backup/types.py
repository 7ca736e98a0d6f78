"""
BackupBot - Backup Types
========================

Dataclasses passed between the archive builder, the delivery router
and the pipeline. Everything except Archive is immutable.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import IO, Optional, Tuple, TYPE_CHECKING
from zoneinfo import ZoneInfo

if TYPE_CHECKING:  # pragma: no cover - typing guard
    from backupbot.core.config import AppConfig


# =============================================================================
# Targets & Requests
# =============================================================================

@dataclass(frozen=True)
class ChatTarget:
    """Chat (and optional forum thread) that receives the archive."""

    chat_id: int
    thread_id: Optional[int] = None

    @classmethod
    def from_ids(cls, chat_id: int, thread_id: Optional[int]) -> "ChatTarget":
        # Telegram uses 0 / missing for "no thread"
        return cls(chat_id=chat_id, thread_id=thread_id or None)


class Trigger(str, Enum):
    SCHEDULE = "schedule"
    COMMAND = "command"
    STARTUP = "startup"


@dataclass(frozen=True)
class RunRequest:
    """One request to build and deliver a backup. target=None means the default chat."""

    trigger: Trigger
    target: Optional[ChatTarget] = None
    label: str = ""


# =============================================================================
# Backup Spec
# =============================================================================

@dataclass(frozen=True)
class PathMapping:
    source: str
    archive_path: str


@dataclass(frozen=True)
class BackupSpec:
    """Resolved settings for exactly one run."""

    files: Tuple[PathMapping, ...] = ()
    dirs: Tuple[PathMapping, ...] = ()
    exclude: Tuple[str, ...] = ()
    target: ChatTarget = field(default_factory=lambda: ChatTarget(0))
    threshold: int = 0
    output_dir: str = "."
    name_prefix: str = "backup"
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))

    @classmethod
    def from_config(cls, config: "AppConfig", target: Optional[ChatTarget] = None) -> "BackupSpec":
        """Build a BackupSpec from a config snapshot, optionally overriding the target chat."""
        if target is None:
            target = ChatTarget.from_ids(
                config.backup_chat_data.id,
                config.backup_chat_data.thread_id,
            )
        return cls(
            files=tuple(PathMapping(m.path, m.archive_path) for m in config.include_data.files),
            dirs=tuple(PathMapping(m.path, m.archive_path) for m in config.include_data.dirs),
            exclude=tuple(config.archive.exclude_objects),
            target=target,
            threshold=config.archive.max_bot_upload_bytes,
            output_dir=config.archive.temp_backup_dir,
            name_prefix=config.archive.archive_name,
            timezone=config.tz,
        )


# =============================================================================
# Archive
# =============================================================================

class EntryStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class EntryResult:
    """What happened to one configured or discovered path."""

    source: str
    archive_path: str
    status: EntryStatus
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status is EntryStatus.OK


class Archive:
    """
    A finished archive on disk plus an open read handle.

    The owner must close it: close() releases the handle and deletes the
    file. Use it as a context manager so every exit path cleans up.
    """

    def __init__(self, path: Path, file: IO[bytes], entries: Tuple[EntryResult, ...] = ()) -> None:
        self.path = Path(path)
        self.file = file
        self.entries = entries
        self.size = os.fstat(file.fileno()).st_size
        self._closed = False

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def written(self) -> Tuple[EntryResult, ...]:
        return tuple(e for e in self.entries if e.ok)

    @property
    def skipped(self) -> Tuple[EntryResult, ...]:
        return tuple(e for e in self.entries if not e.ok)

    def close(self) -> None:
        """Close the handle and remove the file. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        try:
            self.file.close()
        finally:
            self.path.unlink(missing_ok=True)

    def __enter__(self) -> "Archive":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# =============================================================================
# Delivery
# =============================================================================

class Channel(str, Enum):
    BOT = "bot"
    CLIENT = "client"


@dataclass(frozen=True)
class DeliveryOutcome:
    channel: Channel
    success: bool
    bytes_sent: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class RunReport:
    """Result of one pipeline run, returned for inspection and tests."""

    request: RunRequest
    target: Optional[ChatTarget] = None
    archive_name: Optional[str] = None
    entries: Tuple[EntryResult, ...] = ()
    outcome: Optional[DeliveryOutcome] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.outcome is not None and self.outcome.success


__all__ = [
    "Archive",
    "BackupSpec",
    "Channel",
    "ChatTarget",
    "DeliveryOutcome",
    "EntryResult",
    "EntryStatus",
    "PathMapping",
    "RunReport",
    "RunRequest",
    "Trigger",
]
