"""
Sync Scheduler - Background Tasks

Runs the weekly full sync (eligibility selection + orchestrator batch,
followed by a ranking recompute) and the daily ranking recompute as
discord.ext.tasks loops, and schedules on-demand syncs for single links.
Cadences come from runtime settings; a changed cadence applies from the
loop's next tick.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Optional, Set

from discord.ext import tasks

from codetrack.config import Config
from codetrack.database.models import Platform
from codetrack.services.configuration import ConfigurationService
from codetrack.services.eligibility import ALL_MODES, EligibilitySelector
from codetrack.services.ranking_service import RankingService
from codetrack.services.sync_orchestrator import SyncBatchResult, SyncOrchestrator, SyncResult
from codetrack.utils.time_utils import to_local

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Periodic and on-demand synchronization"""

    def __init__(self, selector: EligibilitySelector, orchestrator: SyncOrchestrator,
                 ranking_service: RankingService, settings: Optional[ConfigurationService] = None,
                 sync_interval_hours: float = None, ranking_interval_hours: float = None,
                 run_on_start: bool = False):
        self.selector = selector
        self.orchestrator = orchestrator
        self.ranking = ranking_service
        self.settings = settings
        self._sync_interval_hours = sync_interval_hours
        self._ranking_interval_hours = ranking_interval_hours
        # Loops fire immediately on start; skip that tick unless asked otherwise
        self.run_on_start = run_on_start
        self._background: Set[asyncio.Task] = set()

    @property
    def sync_interval_hours(self) -> float:
        if self._sync_interval_hours is not None:
            return self._sync_interval_hours
        return self.settings.sync_interval_hours if self.settings else Config.SYNC_INTERVAL_HOURS

    @property
    def ranking_interval_hours(self) -> float:
        if self._ranking_interval_hours is not None:
            return self._ranking_interval_hours
        return self.settings.ranking_interval_hours if self.settings else Config.RANKING_INTERVAL_HOURS

    def start(self):
        """Start both loops (requires a running event loop)"""
        self.full_sync_loop.change_interval(hours=self.sync_interval_hours)
        self.ranking_loop.change_interval(hours=self.ranking_interval_hours)
        self.full_sync_loop.start()
        self.ranking_loop.start()
        logger.info(
            f"[SCHEDULER] Started: full sync every {self.sync_interval_hours}h, "
            f"ranking every {self.ranking_interval_hours}h ({Config.TIMEZONE})"
        )

    async def stop(self):
        """Stop loops and cancel in-flight on-demand syncs"""
        self.full_sync_loop.cancel()
        self.ranking_loop.cancel()
        pending = list(self._background)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("[SCHEDULER] Stopped")

    @property
    def is_running(self) -> bool:
        return self.full_sync_loop.is_running() or self.ranking_loop.is_running()

    def next_runs(self) -> Dict[str, Optional[datetime]]:
        """Next tick of each loop in the display timezone (None when not scheduled)"""
        return {
            'full_sync': to_local(self.full_sync_loop.next_iteration, Config.TIMEZONE),
            'ranking': to_local(self.ranking_loop.next_iteration, Config.TIMEZONE),
        }

    def _apply_interval(self, loop: tasks.Loop, hours: float, name: str):
        """Pick up a cadence changed in settings; takes effect after the current tick"""
        if loop.hours != hours:
            logger.info(f"[SCHEDULER] {name} cadence changed: {loop.hours}h -> {hours}h")
            loop.change_interval(hours=hours)

    @tasks.loop(hours=168)
    async def full_sync_loop(self):
        """Weekly full sync of accepted links and cooled-down suspended links"""
        self._apply_interval(self.full_sync_loop, self.sync_interval_hours, "Full sync")
        if self.full_sync_loop.current_loop == 0 and not self.run_on_start:
            return
        try:
            await self.run_scheduled_sync()
        except Exception as e:
            # Retried at the next tick
            logger.error(f"[SCHEDULER] Error in full sync task: {e}", exc_info=True)

    @tasks.loop(hours=24)
    async def ranking_loop(self):
        """Daily ranking recompute"""
        self._apply_interval(self.ranking_loop, self.ranking_interval_hours, "Ranking")
        if self.ranking_loop.current_loop == 0 and not self.run_on_start:
            return
        try:
            await self.ranking.run_ranking_recompute()
        except Exception as e:
            logger.error(f"[SCHEDULER] Error in ranking task: {e}", exc_info=True)

    async def run_scheduled_sync(self) -> SyncBatchResult:
        """One full sync pass followed by a ranking recompute"""
        logger.info("[SCHEDULER] Running scheduled performance sync")
        targets = await self.selector.select(ALL_MODES)
        result = await self.orchestrator.run_batch(targets)
        await self.ranking.run_ranking_recompute()
        next_sync = to_local(self.full_sync_loop.next_iteration, Config.TIMEZONE)
        logger.info(f"[SCHEDULER] Scheduled sync complete: {result.summary()}, next run: {next_sync}")
        return result

    def trigger_sync(self, student_id: str, platform: Platform, username: str) -> asyncio.Task:
        """Sync one link in the background as soon as possible"""
        task = asyncio.create_task(self._run_on_demand(student_id, platform, username))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _run_on_demand(self, student_id: str, platform: Platform, username: str) -> Optional[SyncResult]:
        try:
            return await self.orchestrator.sync_profile(student_id, platform, username)
        except Exception as e:
            logger.error(
                f"[SCHEDULER] On-demand sync failed for student_id={student_id}, "
                f"platform={Platform.parse(platform).value}: {e}",
                exc_info=True
            )
            return None

    async def wait_for_background(self):
        """Wait until every on-demand sync scheduled so far has finished"""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
