"""
BackupBot - Configuration
=========================

YAML configuration validated into immutable snapshots.

Secrets may also come from the environment (or a .env file):
BACKUPBOT_TOKEN, BACKUPBOT_API_ID and BACKUPBOT_API_HASH take
precedence over the values in the YAML file.
"""

import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from backupbot.core.constants import (
    BOT_UPLOAD_LIMIT,
    CLIENT_TIMEOUT,
    DEFAULT_ARCHIVE_PREFIX,
    DEFAULT_CONFIG_PATH,
    DEFAULT_TIMEZONE,
)
from backupbot.core.errors import ConfigError
from backupbot.core.logger import log


def _get_env_int(key: str, default: Optional[int] = None) -> Optional[int]:
    """Get environment variable as int with default."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# =============================================================================
# Models
# =============================================================================

class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class PathMap(_Frozen):
    """A source path and where it lands inside the archive."""

    path: str
    archive_path: str

    @field_validator("archive_path")
    @classmethod
    def _check_archive_path(cls, value: str) -> str:
        parts = [p for p in value.replace("\\", "/").split("/") if p and p != "."]
        if not parts:
            raise ValueError("archive_path must name a location inside the archive")
        if ".." in parts:
            raise ValueError("archive_path must not contain '..' segments")
        return value


class BotSettings(_Frozen):
    token: str = ""
    send_archive_on_start: bool = False


class ArchiveSettings(_Frozen):
    exclude_objects: Tuple[str, ...] = ()
    archive_name: str = DEFAULT_ARCHIVE_PREFIX
    temp_backup_dir: str = "."
    timezone: str = DEFAULT_TIMEZONE
    backup_times: Tuple[str, ...] = ()
    max_bot_upload_bytes: int = Field(default=BOT_UPLOAD_LIMIT, ge=1)
    serialize_runs: bool = False

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {value!r}") from e
        return value

    @field_validator("archive_name")
    @classmethod
    def _check_archive_name(cls, value: str) -> str:
        if not value or "/" in value or os.sep in value:
            raise ValueError("archive_name must be a plain file name prefix")
        return value


class IncludeData(_Frozen):
    dirs: Tuple[PathMap, ...] = ()
    files: Tuple[PathMap, ...] = ()


class BackupChatData(_Frozen):
    id: int = 0
    thread_id: int = 0


class ClientApiData(_Frozen):
    id: int = 0
    hash: str = ""
    timeout: float = Field(default=CLIENT_TIMEOUT, gt=0)


class AppConfig(_Frozen):
    """One immutable configuration snapshot."""

    bot: BotSettings = Field(default_factory=BotSettings)
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)
    include_data: IncludeData = Field(default_factory=IncludeData)
    admins: Tuple[int, ...] = ()
    backup_chat_data: BackupChatData = Field(default_factory=BackupChatData)
    client_api_data: ClientApiData = Field(default_factory=ClientApiData)
    enable_log_file: bool = False

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.archive.timezone)

    def is_admin(self, user_id: Optional[int]) -> bool:
        """An empty admin list lets everyone through."""
        if not self.admins:
            return True
        return user_id is not None and user_id in self.admins


# =============================================================================
# Loading
# =============================================================================

def _apply_env(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay secrets from the environment onto the parsed YAML."""
    token = os.getenv("BACKUPBOT_TOKEN")
    if token:
        raw.setdefault("bot", {})
        raw["bot"] = {**(raw["bot"] or {}), "token": token}

    api_id = _get_env_int("BACKUPBOT_API_ID")
    api_hash = os.getenv("BACKUPBOT_API_HASH")
    if api_id is not None or api_hash:
        client = dict(raw.get("client_api_data") or {})
        if api_id is not None:
            client["id"] = api_id
        if api_hash:
            client["hash"] = api_hash
        raw["client_api_data"] = client

    return raw


def parse_config(text: str) -> AppConfig:
    """Parse YAML text into a validated snapshot."""
    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError("config root must be a mapping")

    try:
        return AppConfig.model_validate(_apply_env(raw))
    except ValidationError as e:
        raise ConfigError(f"invalid config: {e}") from e


def load_config(path: Union[str, Path]) -> AppConfig:
    """Read and validate the config file at `path`."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    return parse_config(text)


def default_config_path() -> Path:
    return Path(os.getenv("BACKUPBOT_CONFIG") or DEFAULT_CONFIG_PATH)


# =============================================================================
# Snapshot Store
# =============================================================================

class ConfigStore:
    """
    Holds the current configuration snapshot.

    Readers always get a complete, immutable AppConfig. `snapshot()`
    re-reads the file when it changed on disk and swaps the reference;
    a broken file keeps the previous snapshot.
    """

    def __init__(self, path: Union[str, Path], config: Optional[AppConfig] = None) -> None:
        self.path = Path(path)
        self._config = config
        self._mtime: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def current(self) -> AppConfig:
        if self._config is None:
            return self.load()
        return self._config

    def _stat_mtime(self) -> Optional[float]:
        try:
            return self.path.stat().st_mtime
        except OSError:
            return None

    def load(self) -> AppConfig:
        """Load the file unconditionally. Raises ConfigError."""
        with self._lock:
            mtime = self._stat_mtime()
            config = load_config(self.path)
            self._config = config
            self._mtime = mtime
            return config

    def snapshot(self) -> AppConfig:
        """Return a fresh snapshot, reloading if the file changed."""
        if self._config is None:
            return self.load()

        mtime = self._stat_mtime()
        if mtime is None or mtime == self._mtime:
            return self._config

        try:
            config = self.load()
        except ConfigError as e:
            log.tree("Config Reload Failed", [
                ("Path", str(self.path)),
                ("Error", str(e)[:200]),
                ("Action", "Keeping previous config"),
            ], emoji="⚠️")
            # Do not retry the same broken file on every run
            self._mtime = mtime
            return self._config

        log.tree("Config Reloaded", [
            ("Path", str(self.path)),
        ], emoji="🔄")
        return config


__all__ = [
    "AppConfig",
    "ArchiveSettings",
    "BackupChatData",
    "BotSettings",
    "ClientApiData",
    "ConfigStore",
    "IncludeData",
    "PathMap",
    "default_config_path",
    "load_config",
    "parse_config",
]
