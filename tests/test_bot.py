"""
Tests for command parsing and dispatch.
"""
import pytest

from backupbot.bot import BackupBot, parse_command
from backupbot.services.backup.types import ChatTarget, Trigger
from backupbot.services.telegram.bot_api import BotAPIError


class FakePipeline:
    def __init__(self):
        self.requests = []
        self.drained = False

    def submit(self, request):
        self.requests.append(request)

    async def drain(self):
        self.drained = True


@pytest.fixture
def make_backup_bot(write_config, fake_bot):
    """Build a BackupBot around the fake Bot API with commands loaded."""

    def _make(admins=(), api=None):
        bot = BackupBot(write_config(admins=admins), api=api or fake_bot, pipeline=FakePipeline())
        bot.username = "BackupTestBot"
        bot.setup_hook()
        return bot

    return _make


def _update(text, chat_id=-1005, user_id=1, thread_id=None, topic=False):
    message = {
        "message_id": 10,
        "text": text,
        "chat": {"id": chat_id, "type": "supergroup"},
        "from": {"id": user_id, "username": "alice"},
    }
    if thread_id is not None:
        message["message_thread_id"] = thread_id
        message["is_topic_message"] = topic
    return {"update_id": 1, "message": message}


@pytest.mark.parametrize("text, expected", [
    ("/backup", "backup"),
    ("/backup now", "backup"),
    ("/Backup", "backup"),
    ("/backup@BackupTestBot", "backup"),
    ("/backup@backuptestbot", "backup"),
    ("/backup@OtherBot", None),
    ("backup", None),
    ("/", None),
    ("", None),
    (None, None),
])
def test_parse_command(text, expected):
    assert parse_command(text, "BackupTestBot") == expected


def test_addressed_command_without_known_username():
    assert parse_command("/backup@BackupTestBot", None) is None


def test_commands_registered(make_backup_bot):
    bot = make_backup_bot()
    assert set(bot.commands) == {"start", "backup"}
    assert bot.scheduler is not None


@pytest.mark.asyncio
async def test_backup_from_topic_targets_thread(make_backup_bot):
    bot = make_backup_bot()

    assert await bot.dispatch(_update("/backup", thread_id=7, topic=True))

    [request] = bot.pipeline.requests
    assert request.trigger is Trigger.COMMAND
    assert request.target == ChatTarget(-1005, 7)


@pytest.mark.asyncio
async def test_backup_reply_thread_outside_topic_is_ignored(make_backup_bot):
    bot = make_backup_bot()

    await bot.dispatch(_update("/backup", thread_id=7, topic=False))

    assert bot.pipeline.requests[0].target == ChatTarget(-1005, None)


@pytest.mark.asyncio
async def test_backup_rejected_for_non_admin(make_backup_bot, fake_bot):
    bot = make_backup_bot(admins=[99])

    assert await bot.dispatch(_update("/backup", user_id=1))

    assert bot.pipeline.requests == []
    assert fake_bot.messages[0]["text"] == "You are not allowed to run backups."


@pytest.mark.asyncio
async def test_backup_allowed_for_admin(make_backup_bot):
    bot = make_backup_bot(admins=[99])

    await bot.dispatch(_update("/backup", user_id=99))

    assert len(bot.pipeline.requests) == 1


@pytest.mark.asyncio
async def test_start_replies_with_ids(make_backup_bot, fake_bot):
    bot = make_backup_bot()

    await bot.dispatch(_update("/start", chat_id=-1007, thread_id=3, topic=True))

    [reply] = fake_bot.messages
    assert reply["chat_id"] == -1007 and reply["thread_id"] == 3
    assert reply["text"] == (
        "The /start command has been successfully processed. "
        "ChatID <code>-1007</code>, ThreadID <code>3</code>"
    )


@pytest.mark.asyncio
async def test_unknown_and_foreign_commands_ignored(make_backup_bot, fake_bot):
    bot = make_backup_bot()

    assert not await bot.dispatch(_update("/backup@OtherBot"))
    assert not await bot.dispatch(_update("/help"))
    assert not await bot.dispatch(_update("hello"))
    assert not await bot.dispatch({"update_id": 2, "edited_message": {}})

    assert bot.pipeline.requests == []
    assert fake_bot.messages == []


@pytest.mark.asyncio
async def test_failed_reply_does_not_escape_dispatch(make_backup_bot, make_bot):
    api = make_bot(fail_message=BotAPIError("sendMessage", "Forbidden: bot was kicked", 403))
    bot = make_backup_bot(api=api)

    assert await bot.dispatch(_update("/start"))


@pytest.mark.asyncio
async def test_close_stops_everything(make_backup_bot):
    bot = make_backup_bot()

    await bot.close()

    assert bot.pipeline.drained


@pytest.mark.asyncio
async def test_crashing_handler_does_not_escape_dispatch(make_backup_bot):
    bot = make_backup_bot()

    async def broken(message):
        raise KeyError("chat")

    bot.add_command("broken", broken)

    assert await bot.dispatch(_update("/broken"))


@pytest.mark.asyncio
async def test_polling_continues_after_crashing_handler(make_backup_bot, make_bot):
    api = make_bot()
    bot = make_backup_bot(api=api)

    async def broken(message):
        raise ValueError("bad payload")

    bot.add_command("broken", broken)
    batches = [[
        {**_update("/broken"), "update_id": 1},
        {**_update("/backup"), "update_id": 2},
    ]]

    async def get_updates(offset=None, timeout=0):
        if batches:
            return batches.pop(0)
        bot._running = False
        return []

    api.get_updates = get_updates
    bot._running = True
    await bot._poll_loop()

    assert len(bot.pipeline.requests) == 1
    assert bot._offset == 3
