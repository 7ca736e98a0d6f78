"""
BackupBot - Core Package
========================

Framework essentials: config, constants, errors, and logging.
"""

from backupbot.core.config import AppConfig, ConfigStore, load_config
from backupbot.core.logger import log

__all__ = ["AppConfig", "ConfigStore", "load_config", "log"]
