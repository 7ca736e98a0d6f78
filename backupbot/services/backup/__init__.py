"""
BackupBot - Backup Package
==========================

Archive building, delivery routing, the run pipeline and its scheduler.
"""

from backupbot.services.backup.archive import build_archive
from backupbot.services.backup.delivery import DeliveryRouter
from backupbot.services.backup.exclusion import is_excluded
from backupbot.services.backup.paths import resolve_path
from backupbot.services.backup.pipeline import BackupPipeline
from backupbot.services.backup.scheduler import BackupScheduler
from backupbot.services.backup.types import (
    Archive,
    BackupSpec,
    Channel,
    ChatTarget,
    DeliveryOutcome,
    EntryResult,
    EntryStatus,
    PathMapping,
    RunReport,
    RunRequest,
    Trigger,
)

__all__ = [
    "Archive",
    "BackupPipeline",
    "BackupScheduler",
    "BackupSpec",
    "Channel",
    "ChatTarget",
    "DeliveryOutcome",
    "DeliveryRouter",
    "EntryResult",
    "EntryStatus",
    "PathMapping",
    "RunReport",
    "RunRequest",
    "Trigger",
    "build_archive",
    "is_excluded",
    "resolve_path",
]
