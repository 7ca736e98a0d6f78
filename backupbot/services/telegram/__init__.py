"""
BackupBot - Telegram Package
============================

Delivery channels: Bot API (small files) and MTProto client (large files).
"""

from backupbot.services.telegram.bot_api import BotAPI, BotAPIError
from backupbot.services.telegram.client import ClientChannel

__all__ = ["BotAPI", "BotAPIError", "ClientChannel"]
