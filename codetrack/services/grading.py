"""
Grading Engine.

Holds the metric -> points mapping and compiles it into a ScoreRule, a pure
function of a student's metric values and per-platform link statuses.
Metrics whose platform link is not accepted always contribute zero.
"""

import json
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from sqlalchemy import select

from codetrack.constants import PlatformConstants
from codetrack.database.models import AuditLog, GradingRule, LinkStatus, Platform
from codetrack.services.base import BaseService
from codetrack.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)


def gate_metrics(metrics: Mapping[str, int], statuses: Mapping[Platform, LinkStatus]) -> Dict[str, int]:
    """Copy of `metrics` with every metric of a non-accepted platform forced to 0."""
    gated = {}
    for metric, value in metrics.items():
        owner = PlatformConstants.owner_of(metric)
        accepted = owner is not None and statuses.get(Platform(owner)) == LinkStatus.ACCEPTED
        gated[metric] = (value or 0) if accepted else 0
    return gated


@dataclass(frozen=True)
class ScoreRule:
    """Compiled grading rule: score = sum(gated metric value * points)."""
    points: Mapping[str, int]

    def __call__(self, metrics: Mapping[str, int], statuses: Mapping[Platform, LinkStatus]) -> int:
        return sum(self.contributions(metrics, statuses).values())

    def contributions(self, metrics: Mapping[str, int], statuses: Mapping[Platform, LinkStatus]) -> Dict[str, int]:
        """Per-metric score contribution after gating."""
        gated = gate_metrics(metrics, statuses)
        return {metric: gated.get(metric, 0) * points for metric, points in self.points.items()}


class GradingService(BaseService):
    """Reads, updates and compiles the global grading rule."""

    async def get_grading_rule(self) -> Dict[str, int]:
        """Current metric -> points mapping."""
        async with self.get_session() as session:
            result = await session.execute(select(GradingRule).order_by(GradingRule.metric))
            return {row.metric: row.points for row in result.scalars().all()}

    async def set_grading_points(self, metric: str, points: int, user_id: Optional[str] = None) -> int:
        """
        Set the points awarded per unit of `metric`.

        Does not trigger a ranking recompute; that is a separate explicit call.

        Args:
            metric: Metric column name (e.g. 'stars_hr')
            points: Non-negative integer points per unit
            user_id: Administrator id for the audit trail

        Returns:
            The previous points value (0 if the metric had no entry)

        Raises:
            ValidationError: unknown metric or invalid points value
        """
        if metric not in PlatformConstants.all_metrics():
            raise ValidationError(metric, f"Unknown grading metric '{metric}'")
        if isinstance(points, bool) or not isinstance(points, int):
            raise ValidationError(metric, "Points must be an integer")
        if points < 0:
            raise ValidationError(metric, "Points cannot be negative")

        async with self.get_session() as session:
            rule = await session.get(GradingRule, metric)
            old_points = rule.points if rule else 0
            if rule is None:
                session.add(GradingRule(metric=metric, points=points))
            else:
                rule.points = points

            session.add(AuditLog(
                user_id=str(user_id) if user_id is not None else None,
                action='grading_set',
                details=json.dumps({'metric': metric, 'old_points': old_points, 'new_points': points})
            ))

        logger.info(f"[GRADING] {metric}: {old_points} -> {points} (by {user_id})")
        return old_points

    async def compile_score_expression(self) -> ScoreRule:
        """Compile the stored grading rule into a ScoreRule."""
        rule = await self.get_grading_rule()
        for metric in rule:
            if PlatformConstants.owner_of(metric) is None:
                # Consistency violation: no adapter produces this metric
                logger.warning(f"[GRADING] Metric '{metric}' has no owning platform; it contributes 0")
        return ScoreRule(points=MappingProxyType(dict(rule)))
