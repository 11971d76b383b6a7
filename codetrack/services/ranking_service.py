"""
Ranking Engine

Scores every student with the compiled grading rule, orders them by
score descending (roll number ascending on ties) and writes score and
overall_rank back in one pass.

Key Features:
- Single snapshot read of Student + PerformanceRecord + PlatformLink
- Gated per-platform breakdown, total solved and total contests per entry
- In-process serialisation with an asyncio lock
- Cross-instance serialisation with a Redis lock when REDIS_URL is configured
- Filtered cohort rankings (department / year / section / search) that are
  never persisted
"""

import asyncio
import logging
import uuid
from typing import List, Optional

from redis.exceptions import RedisError
from sqlalchemy import or_, select
from sqlalchemy.orm import joinedload

from codetrack.constants import BreakdownConstants
from codetrack.data_models.ranking import PlatformBreakdown, RankingEntry, RankingFilter
from codetrack.database.models import LinkStatus, Platform, Student
from codetrack.services.base import BaseService
from codetrack.services.grading import GradingService, ScoreRule, gate_metrics
from codetrack.utils.redis_utils import RedisUtils

logger = logging.getLogger(__name__)

RANKING_LOCK_KEY = "codetrack:ranking_recompute_lock"
RANKING_LOCK_SECONDS = 30
RANKING_LOCK_POLL_SECONDS = 0.25


class RankingService(BaseService):
    """Computes and persists the global ranking."""

    def __init__(self, session_factory, grading_service: GradingService, use_redis: bool = True):
        super().__init__(session_factory)
        self.grading = grading_service
        self._lock = asyncio.Lock()
        self.redis_client = None
        self.redis_enabled = use_redis

    async def _get_redis_client(self):
        """Get Redis client for distributed locking. Returns None if Redis is unavailable."""
        if not self.redis_enabled:
            return None

        if self.redis_client is None:
            self.redis_client = await RedisUtils.create_redis_client()
            if self.redis_client is None:
                logger.info("[RANKING] No Redis configured. Recomputes are serialised per process only.")
                self.redis_enabled = False
        return self.redis_client

    async def _acquire_distributed_lock(self, redis_client, token: str) -> bool:
        """
        Wait for the cross-instance recompute lock.

        The lock expires after RANKING_LOCK_SECONDS, so waiting that long always
        ends; if it still cannot be taken the recompute goes ahead unlocked.
        """
        waited = 0.0
        while True:
            try:
                if await redis_client.set(RANKING_LOCK_KEY, token, ex=RANKING_LOCK_SECONDS, nx=True):
                    return True
            except RedisError as e:
                logger.error(f"[RANKING] Redis lock failed: {e}. Proceeding without distributed lock.")
                return False
            if waited >= RANKING_LOCK_SECONDS:
                logger.warning("[RANKING] Timed out waiting for the recompute lock. Proceeding without it.")
                return False
            await asyncio.sleep(RANKING_LOCK_POLL_SECONDS)
            waited += RANKING_LOCK_POLL_SECONDS

    async def _release_distributed_lock(self, redis_client, token: str):
        """Delete the lock only if this instance still holds it."""
        try:
            held = await redis_client.get(RANKING_LOCK_KEY)
            if held is not None and (held.decode() if isinstance(held, bytes) else held) == token:
                await redis_client.delete(RANKING_LOCK_KEY)
        except RedisError as e:
            logger.error(f"[RANKING] Failed to release recompute lock: {e}")

    async def run_ranking_recompute(self) -> List[RankingEntry]:
        """
        Recompute and persist score and overall_rank for every student.

        Recomputes never overlap: within a process they queue on an asyncio
        lock, across instances on the Redis lock. Every run persists its result.

        Returns:
            Ranking entries in rank order
        """
        async with self._lock:
            redis_client = await self._get_redis_client()
            token = uuid.uuid4().hex
            locked = bool(redis_client) and await self._acquire_distributed_lock(redis_client, token)
            try:
                rule = await self.grading.compile_score_expression()
                async with self.get_session() as session:
                    students = await self._load_snapshot(session)
                    entries = self._rank(students, rule)
                    by_id = {student.student_id: student for student in students}
                    for entry in entries:
                        student = by_id[entry.student_id]
                        student.score = entry.score
                        student.overall_rank = entry.rank
            finally:
                if locked:
                    await self._release_distributed_lock(redis_client, token)

            logger.info(f"[RANKING] Ranked and persisted {len(entries)} students")
            return entries

    async def get_ranking(self, ranking_filter: Optional[RankingFilter] = None) -> List[RankingEntry]:
        """
        Ranking for everyone or for a filtered cohort.

        Without a filter this is a full recompute that also persists score and
        overall_rank, so the overall leaderboard always reflects stored ranks.
        A filtered cohort is ranked in memory only (ranks are positions within
        that cohort) and nothing is written.
        """
        if ranking_filter is None or ranking_filter.is_empty:
            return await self.run_ranking_recompute()

        rule = await self.grading.compile_score_expression()
        async with self.get_session() as session:
            students = await self._load_snapshot(session, ranking_filter)
        entries = self._rank(students, rule)
        if ranking_filter.limit is not None:
            entries = entries[:max(ranking_filter.limit, 0)]
        return entries

    async def _load_snapshot(self, session, ranking_filter: Optional[RankingFilter] = None) -> List[Student]:
        """Students with performance and links, loaded by one joined SELECT."""
        stmt = select(Student).options(
            joinedload(Student.performance),
            joinedload(Student.platform_links)
        )
        if ranking_filter is not None:
            if ranking_filter.dept_code is not None:
                stmt = stmt.where(Student.dept_code == ranking_filter.dept_code)
            if ranking_filter.year is not None:
                stmt = stmt.where(Student.year == ranking_filter.year)
            if ranking_filter.section is not None:
                stmt = stmt.where(Student.section == ranking_filter.section)
            if ranking_filter.search:
                pattern = f"%{ranking_filter.search.strip()}%"
                stmt = stmt.where(or_(Student.name.ilike(pattern), Student.student_id.ilike(pattern)))
        result = await session.execute(stmt)
        return list(result.unique().scalars().all())

    def _rank(self, students: List[Student], rule: ScoreRule) -> List[RankingEntry]:
        scored = []
        for student in students:
            metrics = student.performance.get_metrics() if student.performance else {}
            statuses = {link.platform: link.status for link in student.platform_links}
            scored.append((rule(metrics, statuses), student, metrics, statuses))

        # An all-zero cohort therefore comes out in roll-number order
        scored.sort(key=lambda item: (-item[0], item[1].student_id))

        return [
            self._build_entry(rank, score, student, metrics, statuses, rule)
            for rank, (score, student, metrics, statuses) in enumerate(scored, start=1)
        ]

    def _build_entry(self, rank, score, student, metrics, statuses, rule: ScoreRule) -> RankingEntry:
        gated = gate_metrics(metrics, statuses)
        contributions = rule.contributions(metrics, statuses)

        platforms = []
        for platform in Platform:
            labels = BreakdownConstants.LABELS[platform.value]
            platforms.append(PlatformBreakdown(
                platform=platform.value,
                display_name=platform.display_name,
                status=statuses.get(platform, LinkStatus.NONE).value,
                metrics={label: gated.get(metric, 0) for label, metric in labels.items()},
                score=sum(contributions.get(metric, 0) for metric in platform.metrics)
            ))

        return RankingEntry(
            rank=rank,
            student_id=student.student_id,
            name=student.name,
            dept_code=student.dept_code,
            year=student.year,
            section=student.section,
            score=score,
            total_solved=sum(gated.get(metric, 0) for metric in BreakdownConstants.SOLVED_METRICS),
            total_contests=sum(gated.get(metric, 0) for metric in BreakdownConstants.CONTEST_METRICS),
            platforms=tuple(platforms)
        )

    async def close(self):
        if self.redis_client:
            await self.redis_client.aclose()
