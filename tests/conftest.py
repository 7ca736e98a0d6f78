"""
Pytest configuration and shared fixtures.
"""
import asyncio
import tarfile
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from backupbot.core.config import ConfigStore
from backupbot.core.errors import ClientDeliveryError
from backupbot.services.backup.types import Archive, BackupSpec, ChatTarget, PathMapping
from backupbot.services.telegram.bot_api import BotAPIError


# =============================================================================
# Channel Fakes
# =============================================================================

class FakeBot:
    """Stands in for BotAPI; records documents and messages."""

    def __init__(self, fail_document=None, fail_message=None, delay=0.0):
        self.fail_document = fail_document
        self.fail_message = fail_message
        self.delay = delay
        self.documents = []
        self.messages = []
        self.active = 0
        self.max_active = 0

    async def send_document(self, chat_id, document, filename, thread_id=None, caption=None):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_document:
                raise self.fail_document
            self.documents.append({
                "chat_id": chat_id,
                "thread_id": thread_id,
                "filename": filename,
                "data": document.read(),
                "caption": caption,
            })
            return {"message_id": len(self.documents)}
        finally:
            self.active -= 1

    async def send_message(self, chat_id, text, thread_id=None, parse_mode="HTML"):
        if self.fail_message:
            raise self.fail_message
        self.messages.append({"chat_id": chat_id, "thread_id": thread_id, "text": text})
        return {"message_id": len(self.messages)}

    async def get_me(self):
        return {"id": 1, "username": "BackupTestBot"}

    async def close(self):
        pass


class FakeClient:
    """Stands in for ClientChannel."""

    def __init__(self, fail=None, delay=0.0):
        self.fail = fail
        self.delay = delay
        self.calls = []

    async def send_file(self, target, path, caption):
        path = Path(path)
        self.calls.append({
            "target": target,
            "path": path,
            "existed": path.exists(),
            "size": path.stat().st_size if path.exists() else None,
            "caption": caption,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise self.fail


@pytest.fixture
def make_bot():
    return FakeBot


@pytest.fixture
def make_client():
    return FakeClient


@pytest.fixture
def fake_bot():
    return FakeBot()


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def bot_api_error():
    return BotAPIError("sendDocument", "Request Entity Too Large", 413)


@pytest.fixture
def upload_error():
    return ClientDeliveryError("upload", "FILE_PARTS_INVALID")


# =============================================================================
# Files & Specs
# =============================================================================

@pytest.fixture
def out_dir(tmp_path):
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest.fixture
def make_spec(out_dir):
    """Build a BackupSpec with test-friendly defaults."""

    def _make(files=(), dirs=(), exclude=(), threshold=20 * 1024 * 1024, target=None):
        return BackupSpec(
            files=tuple(PathMapping(str(s), a) for s, a in files),
            dirs=tuple(PathMapping(str(s), a) for s, a in dirs),
            exclude=tuple(exclude),
            target=target or ChatTarget(100, None),
            threshold=threshold,
            output_dir=str(out_dir),
            name_prefix="backup",
            timezone=ZoneInfo("UTC"),
        )

    return _make


@pytest.fixture
def make_archive(tmp_path):
    """Create an Archive of exactly `size` bytes without building one."""
    created = []

    def _make(size, name="backup_test.tar.gz"):
        path = tmp_path / name
        path.write_bytes(b"x" * size)
        archive = Archive(path, open(path, "rb"))
        created.append(archive)
        return archive

    yield _make
    for archive in created:
        archive.close()


@pytest.fixture
def read_members():
    """Return a reader mapping member name -> bytes for every file in a .tar.gz."""

    def _read(path):
        with tarfile.open(path, "r:gz") as tar:
            return {
                member.name: tar.extractfile(member).read()
                for member in tar.getmembers()
                if member.isfile()
            }

    return _read


# =============================================================================
# Config
# =============================================================================

CONFIG_TEMPLATE = """
bot:
  token: "123:TEST"
archive:
  archive_name: backup
  temp_backup_dir: {out_dir}
  timezone: Europe/Berlin
  backup_times: ["0 3 * * *"]
  exclude_objects: ["*.tmp"]
  max_bot_upload_bytes: {threshold}
  serialize_runs: {serialize}
include_data:
  files:
    - path: {source}/hostname
      archive_path: etc/hostname
  dirs:
    - path: {source}/data
      archive_path: data
admins: {admins}
backup_chat_data:
  id: -1001
  thread_id: 0
client_api_data:
  id: 0
  hash: ""
  timeout: 5
"""


@pytest.fixture
def source_tree(tmp_path):
    source = tmp_path / "source"
    (source / "data" / "sub").mkdir(parents=True)
    (source / "hostname").write_text("test-host\n")
    (source / "data" / "a.txt").write_text("alpha")
    (source / "data" / "sub" / "b.txt").write_text("beta")
    (source / "data" / "scratch.tmp").write_text("junk")
    return source


@pytest.fixture
def write_config(tmp_path, out_dir, source_tree, monkeypatch):
    """Write a config file and return a ConfigStore for it."""
    for key in ("BACKUPBOT_TOKEN", "BACKUPBOT_API_ID", "BACKUPBOT_API_HASH"):
        monkeypatch.delenv(key, raising=False)

    def _write(threshold=20 * 1024 * 1024, serialize=False, admins=()):
        path = tmp_path / "backup_config.yml"
        path.write_text(CONFIG_TEMPLATE.format(
            out_dir=out_dir,
            source=source_tree,
            threshold=threshold,
            serialize="true" if serialize else "false",
            admins=list(admins),
        ))
        store = ConfigStore(path)
        store.load()
        return store

    return _write
