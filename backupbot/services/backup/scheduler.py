"""
BackupBot - Backup Scheduler
============================

Fires backup runs on cron expressions evaluated in the configured
timezone. Each expression gets its own background task; a bad
expression is logged and skipped without affecting the others.
"""

import asyncio
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from croniter import croniter

from backupbot.core.logger import log
from backupbot.services.backup.types import RunRequest, Trigger
from backupbot.utils.async_utils import create_safe_task


class BackupScheduler:
    """Cron-driven trigger source for the backup pipeline."""

    def __init__(
        self,
        expressions: Iterable[str],
        timezone: ZoneInfo,
        submit: Callable[[RunRequest], object],
    ) -> None:
        self._expressions = list(expressions)
        self._tz = timezone
        self._submit = submit
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = False

    @property
    def registered(self) -> List[str]:
        return list(self._tasks)

    def next_fire(self, expression: str, now: Optional[datetime] = None) -> datetime:
        """Next trigger time strictly after `now`, in the scheduler timezone."""
        now = now or datetime.now(self._tz)
        return croniter(expression, now.astimezone(self._tz)).get_next(datetime)

    def start(self) -> int:
        """Register every valid expression. Returns how many were registered."""
        if self._running:
            return len(self._tasks)
        self._running = True

        for expression in self._expressions:
            if expression in self._tasks:
                continue
            if not croniter.is_valid(expression):
                log.tree("Failed To Add Backup Schedule", [
                    ("Expression", expression),
                    ("Error", "Invalid cron expression"),
                ], emoji="❌")
                continue

            self._tasks[expression] = create_safe_task(
                self._job_loop(expression),
                f"Backup Schedule ({expression})",
            )
            log.tree("Backup Schedule Added", [
                ("Expression", expression),
                ("Next Run", self.next_fire(expression).strftime("%Y-%m-%d %H:%M:%S %Z")),
            ], emoji="⏰")

        log.tree("Backup Scheduler Started", [
            ("Timezone", str(self._tz)),
            ("Schedules", str(len(self._tasks))),
        ], emoji="✅")
        return len(self._tasks)

    async def stop(self) -> None:
        """Cancel every schedule task."""
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _job_loop(self, expression: str) -> None:
        """Sleep until each fire time and submit a scheduled run."""
        schedule = croniter(expression, datetime.now(self._tz))
        fire = schedule.get_next(datetime)

        while self._running:
            delay = (fire - datetime.now(self._tz)).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)
                continue

            log.tree("Scheduled Backup Triggered", [
                ("Expression", expression),
                ("Time", fire.strftime("%Y-%m-%d %H:%M:%S %Z")),
            ], emoji="⏰")
            self._submit(RunRequest(Trigger.SCHEDULE, None, label=expression))

            # Skip fire times missed while the host was suspended
            now = datetime.now(self._tz)
            fire = schedule.get_next(datetime)
            while fire <= now:
                fire = schedule.get_next(datetime)


__all__ = ["BackupScheduler"]
