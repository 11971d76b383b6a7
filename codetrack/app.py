"""
Application facade.

Wires the database, runtime configuration, platform adapters and services
together and exposes the operations callers (web layer, CLI, tests) use.
"""

import asyncio
from typing import Dict, List, Optional

import httpx

from codetrack.adapters import build_adapters
from codetrack.adapters.base import PlatformAdapter
from codetrack.config import Config
from codetrack.data_models.ranking import RankingEntry, RankingFilter
from codetrack.database.database import Database
from codetrack.database.models import Notification, Platform, PlatformLink, Student
from codetrack.services.configuration import ConfigurationService
from codetrack.services.eligibility import EligibilitySelector, SyncTarget
from codetrack.services.grading import GradingService
from codetrack.services.notification_service import NotificationService
from codetrack.services.rate_limiter import SimpleRateLimiter
from codetrack.services.ranking_service import RankingService
from codetrack.services.scheduler import SyncScheduler
from codetrack.services.sync_orchestrator import SyncBatchResult, SyncOrchestrator
from codetrack.services.verification import VerificationService
from codetrack.utils.logger import setup_logger


class CodeTrack:
    """Tracker application: one instance per process"""

    def __init__(self, database_url: str = None, http_client: httpx.AsyncClient = None,
                 adapters: Dict[Platform, PlatformAdapter] = None, sleep=asyncio.sleep,
                 use_redis: bool = True):
        self.logger = setup_logger(__name__)
        self.db = Database(database_url)
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._adapters = adapters
        self._sleep = sleep
        self._use_redis = use_redis

        self.config_service: Optional[ConfigurationService] = None
        self.adapters: Dict[Platform, PlatformAdapter] = {}
        self.notifications: Optional[NotificationService] = None
        self.grading: Optional[GradingService] = None
        self.ranking: Optional[RankingService] = None
        self.selector: Optional[EligibilitySelector] = None
        self.orchestrator: Optional[SyncOrchestrator] = None
        self.verification: Optional[VerificationService] = None
        self.scheduler: Optional[SyncScheduler] = None

    async def start(self, run_scheduler: bool = False):
        """Initialize storage and services; optionally start the background loops"""
        self.logger.info("Setting up codetrack...")

        await self.db.initialize()
        session_factory = self.db.session_factory

        self.config_service = ConfigurationService(session_factory)
        await self.config_service.load_all()
        settings = self.config_service

        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=Config.REQUEST_TIMEOUT)
        self.adapters = self._adapters or build_adapters(self._http_client)

        self.notifications = NotificationService(session_factory)
        self.grading = GradingService(session_factory)
        self.ranking = RankingService(session_factory, self.grading, use_redis=self._use_redis)
        # Knobs are read from settings on every call, so runtime changes apply immediately
        self.selector = EligibilitySelector(session_factory, settings)
        self.orchestrator = SyncOrchestrator(
            session_factory,
            self.adapters,
            self.notifications,
            settings,
            sleep=self._sleep
        )
        self.scheduler = SyncScheduler(self.selector, self.orchestrator, self.ranking, settings)
        self.verification = VerificationService(
            session_factory,
            self.adapters,
            self.selector,
            settings,
            rate_limiter=SimpleRateLimiter(),
            trigger_sync=self.scheduler.trigger_sync
        )

        if run_scheduler:
            self.scheduler.start()

        self.logger.info("codetrack setup complete!")

    async def close(self):
        """Cleanup when shutting down"""
        self.logger.info("Shutting down codetrack...")
        if self.scheduler:
            await self.scheduler.stop()
        if self.ranking:
            await self.ranking.close()
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
        await self.db.close()

    # Students
    async def register_student(self, student_id: str, name: str, dept_code: str = None,
                               year: int = None, section: str = None) -> Student:
        return await self.db.create_student(student_id, name, dept_code, year, section)

    # Verification workflow
    async def submit_platform_link(self, student_id: str, platform, username: str,
                                   verification_required: bool = None) -> PlatformLink:
        """Submit a username; `verification_required` defaults to the runtime setting"""
        if verification_required is None:
            verification_required = self.config_service.verification_required
        return await self.verification.submit_platform_link(
            student_id, platform, username, verification_required
        )

    async def review_platform_link(self, student_id: str, platform, action: str, reviewer_id: str,
                                   reason: str = None) -> PlatformLink:
        return await self.verification.review_platform_link(student_id, platform, action, reviewer_id, reason)

    async def request_manual_refresh(self, student_id: str) -> List[SyncTarget]:
        return await self.verification.request_manual_refresh(student_id)

    async def list_pending_links(self, dept_code: str = None, year: int = None,
                                 section: str = None) -> List[PlatformLink]:
        return await self.verification.list_pending_links(dept_code, year, section)

    async def set_verification_required(self, required: bool, user_id: str):
        await self.config_service.set('verification.required', bool(required), user_id)

    # Sync and ranking
    async def run_scheduled_sync(self) -> SyncBatchResult:
        return await self.scheduler.run_scheduled_sync()

    async def run_ranking_recompute(self) -> List[RankingEntry]:
        return await self.ranking.run_ranking_recompute()

    async def get_ranking(self, ranking_filter: RankingFilter = None) -> List[RankingEntry]:
        return await self.ranking.get_ranking(ranking_filter)

    async def wait_for_background_syncs(self):
        await self.scheduler.wait_for_background()

    # Grading
    async def get_grading_rule(self) -> Dict[str, int]:
        return await self.grading.get_grading_rule()

    async def set_grading_points(self, metric: str, points: int, user_id: str = None) -> int:
        return await self.grading.set_grading_points(metric, points, user_id)

    # Notifications
    async def list_notifications(self, student_id: str, unread_only: bool = False) -> List[Notification]:
        return await self.notifications.list_notifications(student_id, unread_only)

    async def mark_notification_read(self, notification_id: int, student_id: str = None) -> bool:
        return await self.notifications.mark_notification_read(notification_id, student_id)
