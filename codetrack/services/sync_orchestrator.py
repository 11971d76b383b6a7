"""
Sync Orchestrator - profile synchronization engine

For one (student, platform, username) triple the orchestrator fetches fresh
metrics through the platform adapter, retrying transient failures, and then
reconciles the result in a single transaction:

- success: overwrite this platform's PerformanceRecord columns, reactivate a
  suspended link and notify the student
- exhausted retries / invalid username / missing profile: suspend the link,
  stamp last_scrape_attempt and notify the student

Adapter failures never propagate to callers; they only show up as link
status and notifications. Batches fan out through a bounded worker pool.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from codetrack.adapters.base import FetchError, PlatformAdapter, PlatformMetrics, TransientFetchError
from codetrack.config import Config
from codetrack.constants import SyncConstants
from codetrack.database.models import LinkStatus, PerformanceRecord, Platform, PlatformLink
from codetrack.services.base import BaseService
from codetrack.services.configuration import ConfigurationService
from codetrack.services.eligibility import SyncTarget
from codetrack.services.notification_service import NotificationService
from codetrack.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class SyncOutcome(Enum):
    UPDATED = "updated"          # Metrics written, link stayed accepted
    REACTIVATED = "reactivated"  # Metrics written, suspended -> accepted
    SUSPENDED = "suspended"      # Fetch failed, link suspended (or re-stamped)
    SKIPPED = "skipped"          # Link changed or vanished while fetching


@dataclass
class SyncResult:
    """Outcome of one triple"""
    target: SyncTarget
    outcome: SyncOutcome
    attempts: int
    error: Optional[str] = None


@dataclass
class SyncBatchResult:
    """Summary of a batch run"""
    results: List[SyncResult] = field(default_factory=list)

    def count(self, outcome: SyncOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def total(self) -> int:
        return len(self.results)

    def summary(self) -> Dict[str, int]:
        return {outcome.value: self.count(outcome) for outcome in SyncOutcome}


class SyncOrchestrator(BaseService):
    """Drives adapter calls and reconciles their results into the store."""

    def __init__(self, session_factory, adapters: Dict[Platform, PlatformAdapter],
                 notification_service: NotificationService, settings: Optional[ConfigurationService] = None,
                 max_attempts: int = None, backoff_seconds: float = None, workers: int = None,
                 sleep=asyncio.sleep):
        super().__init__(session_factory)
        self.adapters = adapters
        self.notifications = notification_service
        self.settings = settings
        # Explicit arguments pin a knob; otherwise it is read from settings on each call
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._workers = workers
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        if self._max_attempts is not None:
            return self._max_attempts
        return self.settings.sync_max_attempts if self.settings else Config.SYNC_MAX_ATTEMPTS

    @property
    def backoff_seconds(self) -> float:
        if self._backoff_seconds is not None:
            return self._backoff_seconds
        return self.settings.sync_backoff_seconds if self.settings else Config.SYNC_BACKOFF_SECONDS

    @property
    def workers(self) -> int:
        if self._workers is not None:
            return self._workers
        return self.settings.sync_workers if self.settings else Config.SYNC_WORKERS

    async def sync_profile(self, student_id: str, platform, username: str) -> SyncResult:
        """
        Synchronize one platform link of one student.

        Args:
            student_id: Student roll number
            platform: Platform enum or its string value
            username: Username stored on the link when the work was selected

        Returns:
            SyncResult describing what was written
        """
        platform = Platform.parse(platform)
        target = SyncTarget(student_id, platform, username)
        adapter = self.adapters.get(platform)
        if adapter is None:
            logger.error(f"[SCRAPING] No adapter registered for {platform.value}")
            return SyncResult(target, SyncOutcome.SKIPPED, 0, "no adapter")

        max_attempts = max(1, self.max_attempts)
        backoff_seconds = self.backoff_seconds
        attempts = 0
        last_error = None
        while attempts < max_attempts:
            attempts += 1
            try:
                metrics = await adapter.fetch(username)
            except TransientFetchError as e:
                last_error = e
                logger.error(
                    f"[SCRAPING] Attempt {attempts}: Error scraping performance for "
                    f"student_id={student_id}, platform={platform.value}: {e.reason}"
                )
            except FetchError as e:
                # Invalid usernames and missing profiles are not worth retrying
                last_error = e
                logger.error(
                    f"[SCRAPING] {e.kind} for student_id={student_id}, platform={platform.value}: {e.reason}"
                )
                break
            except Exception as e:
                last_error = e
                logger.error(
                    f"[SCRAPING] Attempt {attempts}: Unexpected adapter failure for "
                    f"student_id={student_id}, platform={platform.value}: {e}",
                    exc_info=True
                )
            else:
                return await self._record_success(target, metrics, attempts)

            if attempts < max_attempts:
                await self._sleep(backoff_seconds)

        return await self._record_failure(target, last_error, attempts)

    async def _record_success(self, target: SyncTarget, metrics: PlatformMetrics, attempts: int) -> SyncResult:
        notification = None

        async def write() -> SyncOutcome:
            nonlocal notification
            notification = None
            async with self.get_session() as session:
                link = await self._get_link(session, target)
                if link is None or link.status not in (LinkStatus.ACCEPTED, LinkStatus.SUSPENDED):
                    logger.info(f"[SCRAPING] Discarding stale result for {target}")
                    return SyncOutcome.SKIPPED

                record = await session.get(PerformanceRecord, target.student_id)
                if record is None:
                    record = PerformanceRecord(student_id=target.student_id)
                    session.add(record)
                record.apply_metrics(target.platform, metrics.record_values())
                record.last_updated = utcnow()

                if link.status == LinkStatus.SUSPENDED:
                    link.transition_to(LinkStatus.ACCEPTED)
                    name = target.platform.display_name
                    notification = self.notifications.emit(
                        session,
                        target.student_id,
                        SyncConstants.REACTIVATED_TITLE.format(name=name),
                        SyncConstants.REACTIVATED_MESSAGE.format(name=name),
                        LinkStatus.ACCEPTED.value
                    )
                    return SyncOutcome.REACTIVATED
                return SyncOutcome.UPDATED

        outcome = await self.execute_with_retry(write)
        if notification is not None:
            self.notifications.dispatch(notification)
        logger.info(
            f"[SCRAPING] {target.platform.display_name} performance {outcome.value} "
            f"for student_id={target.student_id}"
        )
        return SyncResult(target, outcome, attempts)

    async def _record_failure(self, target: SyncTarget, error: Optional[BaseException], attempts: int) -> SyncResult:
        notification = None

        async def write() -> SyncOutcome:
            nonlocal notification
            notification = None
            async with self.get_session() as session:
                link = await self._get_link(session, target)
                if link is None or link.status not in (LinkStatus.ACCEPTED, LinkStatus.SUSPENDED):
                    logger.info(f"[SCRAPING] Not suspending {target}: link changed while fetching")
                    return SyncOutcome.SKIPPED

                link.last_scrape_attempt = utcnow()
                if link.status == LinkStatus.ACCEPTED:
                    link.transition_to(LinkStatus.SUSPENDED)
                    name = target.platform.display_name
                    notification = self.notifications.emit(
                        session,
                        target.student_id,
                        SyncConstants.SUSPENDED_TITLE.format(name=name),
                        SyncConstants.SUSPENDED_MESSAGE.format(name=name),
                        LinkStatus.SUSPENDED.value
                    )
                return SyncOutcome.SUSPENDED

        outcome = await self.execute_with_retry(write)
        if notification is not None:
            self.notifications.dispatch(notification)
        if outcome == SyncOutcome.SUSPENDED:
            logger.warning(
                f"[SCRAPING] Scraping failed after {attempts} attempts. Marked as suspended for "
                f"student_id={target.student_id}, platform={target.platform.value}"
            )
        return SyncResult(target, outcome, attempts, str(error) if error else None)

    async def _get_link(self, session, target: SyncTarget) -> Optional[PlatformLink]:
        """The link for `target`, or None if it is gone or now points at another username."""
        result = await session.execute(
            select(PlatformLink).where(
                PlatformLink.student_id == target.student_id,
                PlatformLink.platform == target.platform
            )
        )
        link = result.scalar_one_or_none()
        if link is None or link.username != target.username:
            return None
        return link

    async def run_batch(self, targets: Iterable[SyncTarget], workers: int = None) -> SyncBatchResult:
        """
        Synchronize many triples through a bounded worker pool.

        Triples are independent; a store failure aborts the remaining work
        and is re-raised so the scheduler retries at its next tick.
        """
        targets = list(targets)
        batch = SyncBatchResult()
        if not targets:
            return batch

        queue: asyncio.Queue = asyncio.Queue()
        for target in targets:
            queue.put_nowait(target)

        aborted = asyncio.Event()
        store_errors: List[SQLAlchemyError] = []

        async def worker():
            while not aborted.is_set():
                try:
                    target = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    batch.results.append(
                        await self.sync_profile(target.student_id, target.platform, target.username)
                    )
                except SQLAlchemyError as e:
                    logger.error(f"[SYNC] Store failure while syncing {target}: {e}")
                    store_errors.append(e)
                    aborted.set()
                finally:
                    queue.task_done()

        pool_size = max(1, min(workers or self.workers, len(targets)))
        logger.info(f"[SYNC] Starting batch of {len(targets)} links with {pool_size} workers")
        await asyncio.gather(*(worker() for _ in range(pool_size)))

        if store_errors:
            raise store_errors[0]

        logger.info(f"[SYNC] Batch finished: {batch.summary()}")
        return batch
