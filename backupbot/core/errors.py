"""
BackupBot - Error Hierarchy
===========================

Exceptions raised by the backup pipeline and its delivery channels.
"""

from typing import Optional


class BackupError(RuntimeError):
    """Base exception for backup related failures."""


class ConfigError(BackupError):
    """Configuration file is missing, unreadable or invalid."""


class ArchiveCreationError(BackupError):
    """The archive file could not be created; no delivery is attempted."""


class DeliveryError(BackupError):
    """Sending the archive through a channel failed."""

    channel = "bot"


class ClientDeliveryError(DeliveryError):
    """
    Large-file delivery through the MTProto client failed.

    `stage` is one of "auth", "upload", "send" or "timeout".
    """

    channel = "client"

    def __init__(self, stage: str, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"{stage} failed: {message}")
        self.stage = stage
        self.cause = cause


__all__ = [
    "BackupError",
    "ConfigError",
    "ArchiveCreationError",
    "DeliveryError",
    "ClientDeliveryError",
]
