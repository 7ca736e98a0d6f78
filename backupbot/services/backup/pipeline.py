"""
BackupBot - Backup Pipeline
===========================

Single entry point for every backup run. Schedules, commands and the
startup hook all submit a RunRequest; each run takes a fresh config
snapshot, builds the archive in a worker thread, delivers it once and
always deletes it afterwards.
"""

import asyncio
from typing import Optional, Set, Tuple

from backupbot.core.config import AppConfig, ConfigStore
from backupbot.core.errors import ArchiveCreationError, ConfigError
from backupbot.core.logger import log
from backupbot.services.backup.archive import build_archive
from backupbot.services.backup.delivery import DeliveryRouter
from backupbot.services.backup.types import Archive, BackupSpec, RunReport, RunRequest
from backupbot.services.telegram.client import ClientChannel
from backupbot.utils.async_utils import create_safe_task
from backupbot.utils.text import truncate


def _discard_archive(future: "asyncio.Future[Archive]") -> None:
    """Close an archive whose run was cancelled while it was being built."""
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()


class BackupPipeline:
    """Builds and delivers backups for incoming run requests."""

    def __init__(self, store: ConfigStore, bot, client=None) -> None:
        self._store = store
        self._bot = bot
        self._fixed_client = client
        self._client: Optional[ClientChannel] = None
        self._client_key: Optional[Tuple[int, str, str]] = None
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(self, request: RunRequest) -> asyncio.Task:
        """Start a run in the background and return its task."""
        task = create_safe_task(self.run(request), f"Backup Run ({request.trigger.value})")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def active_runs(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every submitted run to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # =========================================================================
    # Run
    # =========================================================================

    def _client_for(self, config: AppConfig):
        """MTProto channel for these credentials, kept across runs to reuse its session."""
        if self._fixed_client is not None:
            return self._fixed_client

        api = config.client_api_data
        if not api.id or not api.hash:
            return None

        key = (api.id, api.hash, config.bot.token)
        if self._client is None or self._client_key != key:
            self._client = ClientChannel(api.id, api.hash, config.bot.token)
            self._client_key = key
        return self._client

    async def run(self, request: RunRequest) -> RunReport:
        """Run one backup. Never raises for backup failures; they end up in the report."""
        try:
            config = self._store.snapshot()
        except ConfigError as e:
            log.tree("Backup Run Aborted", [
                ("Trigger", request.trigger.value),
                ("Reason", "Config unavailable"),
                ("Error", truncate(str(e), 200)),
            ], emoji="❌")
            return RunReport(request, error=str(e))

        spec = BackupSpec.from_config(config, request.target)
        try:
            if config.archive.serialize_runs:
                async with self._lock:
                    return await self._execute(request, spec, config)
            return await self._execute(request, spec, config)
        except Exception as e:
            log.tree("Backup Run Crashed", [
                ("Trigger", request.trigger.value),
                ("Error Type", type(e).__name__),
                ("Error", truncate(str(e), 200)),
            ], emoji="🚨")
            return RunReport(request, spec.target, error=f"{type(e).__name__}: {e}")

    async def _execute(self, request: RunRequest, spec: BackupSpec, config: AppConfig) -> RunReport:
        log.tree("Backup Run Started", [
            ("Trigger", request.trigger.value),
            ("Label", request.label or "-"),
            ("Chat", str(spec.target.chat_id)),
            ("Thread", str(spec.target.thread_id or "-")),
        ], emoji="💾")

        router = DeliveryRouter(
            self._bot,
            self._client_for(config),
            threshold=spec.threshold,
            client_timeout=config.client_api_data.timeout,
        )

        build = asyncio.ensure_future(asyncio.to_thread(build_archive, spec))
        try:
            archive = await asyncio.shield(build)
        except asyncio.CancelledError:
            # The thread keeps running; delete its archive once it is done
            build.add_done_callback(_discard_archive)
            raise
        except ArchiveCreationError as e:
            log.tree("Archive Creation Failed", [
                ("Trigger", request.trigger.value),
                ("Error", truncate(str(e), 200)),
            ], emoji="❌")
            await router.notify_failure(spec.target, None, str(e))
            return RunReport(request, spec.target, error=str(e))

        with archive:
            outcome = await router.deliver(archive, spec.target)

        report = RunReport(
            request=request,
            target=spec.target,
            archive_name=archive.name,
            entries=archive.entries,
            outcome=outcome,
            error=outcome.error,
        )
        log.tree("Backup Run Finished", [
            ("Trigger", request.trigger.value),
            ("Archive", archive.name),
            ("Channel", outcome.channel.value),
            ("Result", "Delivered" if outcome.success else "Failed"),
            ("Skipped Entries", str(len(archive.skipped))),
        ], emoji="✅" if outcome.success else "❌")
        return report


__all__ = ["BackupPipeline"]
