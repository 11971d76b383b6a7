"""
Eligibility Selector.

Decides which (student, platform, username) triples are due for a sync pass:
accepted links (full mode) and suspended links whose cooldown has elapsed
(cooldown-retry mode). One batch evaluates both rules per link.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from sqlalchemy import and_, or_, select

from codetrack.config import Config
from codetrack.database.models import LinkStatus, Platform, PlatformLink
from codetrack.services.base import BaseService
from codetrack.services.configuration import ConfigurationService
from codetrack.utils.time_utils import hours_ago, utcnow

logger = logging.getLogger(__name__)


class SelectionMode(Enum):
    FULL = "full"
    COOLDOWN_RETRY = "cooldown_retry"


ALL_MODES = (SelectionMode.FULL, SelectionMode.COOLDOWN_RETRY)


@dataclass(frozen=True)
class SyncTarget:
    """One unit of sync work"""
    student_id: str
    platform: Platform
    username: str

    @property
    def sort_key(self):
        return (self.student_id, self.platform.value)


def is_eligible(link: PlatformLink, modes: Iterable[SelectionMode], now: datetime,
                cooldown_hours: float) -> bool:
    """Whether a single link qualifies under any of `modes`."""
    if not link.username:
        return False
    modes = set(modes)
    if SelectionMode.FULL in modes and link.status == LinkStatus.ACCEPTED:
        return True
    if SelectionMode.COOLDOWN_RETRY in modes and link.status == LinkStatus.SUSPENDED:
        return link.last_scrape_attempt is None or link.last_scrape_attempt < hours_ago(cooldown_hours, now)
    return False


class EligibilitySelector(BaseService):
    """Selects links due for synchronization."""

    def __init__(self, session_factory, settings: Optional[ConfigurationService] = None,
                 cooldown_hours: float = None):
        super().__init__(session_factory)
        self.settings = settings
        self._cooldown_hours = cooldown_hours

    @property
    def cooldown_hours(self) -> float:
        if self._cooldown_hours is not None:
            return self._cooldown_hours
        return self.settings.cooldown_hours if self.settings else Config.SUSPENSION_COOLDOWN_HOURS

    async def select(self, modes: Iterable[SelectionMode] = ALL_MODES,
                     now: Optional[datetime] = None) -> List[SyncTarget]:
        """
        Return de-duplicated sync targets ordered by (student_id, platform).

        Args:
            modes: Rules to evaluate; a link qualifies via any of them
            now: Reference time for the cooldown (defaults to current UTC)
        """
        modes = tuple(modes)
        now = now or utcnow()
        cooldown_hours = self.cooldown_hours
        cutoff = hours_ago(cooldown_hours, now)

        conditions = []
        if SelectionMode.FULL in modes:
            conditions.append(PlatformLink.status == LinkStatus.ACCEPTED)
        if SelectionMode.COOLDOWN_RETRY in modes:
            conditions.append(and_(
                PlatformLink.status == LinkStatus.SUSPENDED,
                or_(PlatformLink.last_scrape_attempt.is_(None), PlatformLink.last_scrape_attempt < cutoff)
            ))
        if not conditions:
            return []

        async with self.get_session() as session:
            result = await session.execute(
                select(PlatformLink).where(
                    PlatformLink.username.isnot(None),
                    PlatformLink.username != '',
                    or_(*conditions)
                )
            )
            links = result.scalars().all()

        targets = {}
        for link in links:
            # Re-check in Python so both rules are applied identically everywhere
            if is_eligible(link, modes, now, cooldown_hours):
                targets[(link.student_id, link.platform)] = SyncTarget(link.student_id, link.platform, link.username)

        selected = sorted(targets.values(), key=lambda t: t.sort_key)
        logger.info(f"[SYNC] Selected {len(selected)} links for modes {[m.value for m in modes]}")
        return selected

    async def select_for_student(self, student_id: str) -> List[SyncTarget]:
        """All accepted or suspended links of one student, ignoring the cooldown."""
        async with self.get_session() as session:
            result = await session.execute(
                select(PlatformLink).where(
                    PlatformLink.student_id == student_id,
                    PlatformLink.status.in_([LinkStatus.ACCEPTED, LinkStatus.SUSPENDED]),
                    PlatformLink.username.isnot(None),
                    PlatformLink.username != ''
                )
            )
            links = result.scalars().all()
        return sorted(
            (SyncTarget(link.student_id, link.platform, link.username) for link in links),
            key=lambda t: t.sort_key
        )
