"""
Verification Workflow.

Students submit platform usernames; depending on the verification flag the
link goes straight to `accepted` or waits as `pending` for a reviewer. Accepted
links (and manual refreshes) hand work to the on-demand sync trigger.
"""

import json
import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import joinedload

from codetrack.adapters.base import InvalidUsername, PlatformAdapter
from codetrack.config import Config
from codetrack.database.models import AuditLog, LinkStatus, Platform, PlatformLink, Student
from codetrack.services.base import BaseService
from codetrack.services.configuration import ConfigurationService
from codetrack.services.eligibility import EligibilitySelector, SyncTarget
from codetrack.services.rate_limiter import SimpleRateLimiter
from codetrack.utils.exceptions import (
    InvalidInputError, InvalidTransitionError, LinkNotFoundError, RateLimitError, StudentNotFoundError
)

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = {
    'accept': LinkStatus.ACCEPTED,
    'approve': LinkStatus.ACCEPTED,
    'reject': LinkStatus.REJECTED,
}


class VerificationService(BaseService):
    """Submission, review and manual refresh of platform links."""

    def __init__(self, session_factory, adapters: Dict[Platform, PlatformAdapter],
                 selector: EligibilitySelector, settings: Optional[ConfigurationService] = None,
                 rate_limiter: Optional[SimpleRateLimiter] = None,
                 trigger_sync: Optional[Callable[[str, Platform, str], object]] = None,
                 refresh_limit: int = None, refresh_window: int = None):
        super().__init__(session_factory)
        self.adapters = adapters
        self.selector = selector
        self.settings = settings
        self.rate_limiter = rate_limiter or SimpleRateLimiter()
        self.trigger_sync = trigger_sync
        self._refresh_limit = refresh_limit
        self._refresh_window = refresh_window

    @property
    def refresh_limit(self) -> int:
        if self._refresh_limit is not None:
            return self._refresh_limit
        return self.settings.refresh_limit if self.settings else Config.MANUAL_REFRESH_LIMIT

    @property
    def refresh_window(self) -> int:
        if self._refresh_window is not None:
            return self._refresh_window
        return self.settings.refresh_window_seconds if self.settings else Config.MANUAL_REFRESH_WINDOW

    def _parse_platform(self, platform) -> Platform:
        try:
            return Platform.parse(platform)
        except ValueError:
            raise InvalidInputError('platform', f"Unknown platform '{platform}'")

    def _normalize_username(self, platform: Platform, username: Optional[str]) -> str:
        adapter = self.adapters.get(platform)
        if adapter is None:
            raise InvalidInputError('platform', f"{platform.display_name} is not supported")
        try:
            return adapter.normalize_username(username)
        except InvalidUsername as e:
            raise InvalidInputError('username', f"{platform.display_name} username {e.reason}")

    def _schedule(self, target: SyncTarget):
        if self.trigger_sync is None:
            logger.debug(f"[VERIFY] No sync trigger registered; {target} waits for the next full sync")
            return
        self.trigger_sync(target.student_id, target.platform, target.username)

    async def _get_link(self, session, student_id: str, platform: Platform) -> Optional[PlatformLink]:
        result = await session.execute(
            select(PlatformLink).where(
                PlatformLink.student_id == student_id,
                PlatformLink.platform == platform
            )
        )
        return result.scalar_one_or_none()

    async def submit_platform_link(self, student_id: str, platform, username: str,
                                   verification_required: bool) -> PlatformLink:
        """
        Record a student's username for a platform.

        Submitting a new username restarts verification from any state.

        Args:
            student_id: Student roll number
            platform: Platform enum or value
            username: Bare username or profile URL
            verification_required: True -> pending, False -> accepted and synced now

        Raises:
            InvalidInputError: unknown platform or malformed username
            StudentNotFoundError: unknown student
        """
        platform = self._parse_platform(platform)
        username = self._normalize_username(platform, username)
        target_status = LinkStatus.PENDING if verification_required else LinkStatus.ACCEPTED

        async with self.get_session() as session:
            if await session.get(Student, student_id) is None:
                raise StudentNotFoundError(student_id)

            link = await self._get_link(session, student_id, platform)
            if link is None:
                link = PlatformLink(student_id=student_id, platform=platform, status=LinkStatus.NONE)
                session.add(link)

            link.transition_to(target_status)
            link.username = username
            link.verified = not verification_required
            link.verified_by = None
            link.rejection_reason = None
            link.last_scrape_attempt = None

        logger.info(f"[VERIFY] {student_id} submitted {platform.value}:{username} -> {target_status.value}")
        if target_status == LinkStatus.ACCEPTED:
            self._schedule(SyncTarget(student_id, platform, username))
        return link

    async def review_platform_link(self, student_id: str, platform, action: str, reviewer_id: str,
                                   reason: Optional[str] = None) -> PlatformLink:
        """
        Approve or reject a pending link.

        Raises:
            InvalidInputError: unknown action or a rejection without a reason
            LinkNotFoundError: the student never submitted this platform
            InvalidTransitionError: the link is not pending
        """
        platform = self._parse_platform(platform)
        target_status = REVIEW_ACTIONS.get((action or '').strip().lower())
        if target_status is None:
            raise InvalidInputError('action', f"Unknown review action '{action}'")
        reason = (reason or '').strip() or None
        if target_status == LinkStatus.REJECTED and not reason:
            raise InvalidInputError('reason', "A reason is required when rejecting a profile")

        async with self.get_session() as session:
            link = await self._get_link(session, student_id, platform)
            if link is None:
                raise LinkNotFoundError(student_id, platform.value)
            if link.status != LinkStatus.PENDING:
                raise InvalidTransitionError(platform.value, link.status.value, target_status.value)

            link.transition_to(target_status)
            link.verified_by = str(reviewer_id)
            if target_status == LinkStatus.ACCEPTED:
                link.verified = True
                link.rejection_reason = None
            else:
                link.verified = False
                link.rejection_reason = reason

            session.add(AuditLog(
                user_id=str(reviewer_id),
                action='link_review',
                details=json.dumps({
                    'student_id': student_id,
                    'platform': platform.value,
                    'username': link.username,
                    'status': target_status.value,
                    'reason': reason,
                })
            ))

        logger.info(f"[VERIFY] {reviewer_id} {target_status.value} {student_id} {platform.value}:{link.username}")
        if target_status == LinkStatus.ACCEPTED:
            self._schedule(SyncTarget(student_id, platform, link.username))
        return link

    async def request_manual_refresh(self, student_id: str) -> List[SyncTarget]:
        """
        Queue an immediate sync of every accepted or suspended link of a student.

        Raises:
            StudentNotFoundError: unknown student
            RateLimitError: refreshed too recently
        """
        async with self.get_session() as session:
            if await session.get(Student, student_id) is None:
                raise StudentNotFoundError(student_id)

        limit, window = self.refresh_limit, self.refresh_window
        if not await self.rate_limiter.is_allowed(student_id, 'manual_refresh', limit, window):
            raise RateLimitError(window)

        targets = await self.selector.select_for_student(student_id)
        for target in targets:
            self._schedule(target)
        logger.info(f"[VERIFY] Manual refresh for {student_id}: {len(targets)} links queued")
        return targets

    async def list_pending_links(self, dept_code: str = None, year: int = None,
                                 section: str = None) -> List[PlatformLink]:
        """Links waiting for review, optionally narrowed to one cohort."""
        async with self.get_session() as session:
            stmt = (
                select(PlatformLink)
                .join(Student, Student.student_id == PlatformLink.student_id)
                .options(joinedload(PlatformLink.student))
                .where(PlatformLink.status == LinkStatus.PENDING)
            )
            if dept_code is not None:
                stmt = stmt.where(Student.dept_code == dept_code)
            if year is not None:
                stmt = stmt.where(Student.year == year)
            if section is not None:
                stmt = stmt.where(Student.section == section)
            stmt = stmt.order_by(PlatformLink.student_id, PlatformLink.platform)
            result = await session.execute(stmt)
            return list(result.scalars().all())
