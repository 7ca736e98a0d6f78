"""
Tests for the cron scheduler.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from backupbot.services.backup import scheduler as scheduler_module
from backupbot.services.backup.scheduler import BackupScheduler
from backupbot.services.backup.types import Trigger

BERLIN = ZoneInfo("Europe/Berlin")


class FakeCron:
    """First fire time is already due, every later one is a day away."""

    def __init__(self, expression, start):
        self.start = start
        self.calls = 0

    @staticmethod
    def is_valid(expression):
        return expression != "bad"

    def get_next(self, kind):
        self.calls += 1
        if self.calls == 1:
            return self.start - timedelta(seconds=1)
        return self.start + timedelta(days=self.calls)


def test_next_fire_uses_configured_timezone():
    sched = BackupScheduler([], BERLIN, lambda request: None)

    fire = sched.next_fire("0 3 * * *", datetime(2024, 1, 1, 12, 0, tzinfo=BERLIN))
    assert (fire.year, fire.month, fire.day, fire.hour, fire.minute) == (2024, 1, 2, 3, 0)
    assert fire.utcoffset() == timedelta(hours=1)


def test_next_fire_converts_foreign_now():
    sched = BackupScheduler([], BERLIN, lambda request: None)

    # 01:30 UTC is 02:30 in Berlin, so 03:00 Berlin is still ahead today
    fire = sched.next_fire("0 3 * * *", datetime(2024, 1, 1, 1, 30, tzinfo=timezone.utc))
    assert (fire.day, fire.hour) == (1, 3)


@pytest.mark.asyncio
async def test_invalid_expression_is_skipped():
    sched = BackupScheduler(["not a cron", "0 3 * * *"], BERLIN, lambda request: None)

    assert sched.start() == 1
    assert sched.registered == ["0 3 * * *"]
    await sched.stop()


@pytest.mark.asyncio
async def test_start_twice_does_not_duplicate():
    sched = BackupScheduler(["0 3 * * *", "0 3 * * *"], BERLIN, lambda request: None)

    assert sched.start() == 1
    assert sched.start() == 1
    await sched.stop()


@pytest.mark.asyncio
async def test_due_schedule_submits_run(monkeypatch):
    monkeypatch.setattr(scheduler_module, "croniter", FakeCron)
    submitted = []
    sched = BackupScheduler(["nightly", "bad"], BERLIN, submitted.append)

    assert sched.start() == 1
    await asyncio.sleep(0.05)

    [request] = submitted
    assert request.trigger is Trigger.SCHEDULE
    assert request.target is None
    assert request.label == "nightly"
    await sched.stop()


@pytest.mark.asyncio
async def test_stop_cancels_schedules():
    sched = BackupScheduler(["0 3 * * *"], BERLIN, lambda request: None)
    sched.start()
    tasks = list(sched._tasks.values())

    await sched.stop()

    assert sched.registered == []
    assert all(task.done() for task in tasks)
