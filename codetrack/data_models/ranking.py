"""
Ranking data models.

Immutable data transfer objects for the enriched ranking view.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class PlatformBreakdown:
    """One platform's gated contribution for a student."""
    platform: str
    display_name: str
    status: str
    metrics: Dict[str, int]   # Label -> gated value, e.g. {'easy': 10}
    score: int


@dataclass(frozen=True)
class RankingEntry:
    """Single ranking row."""
    rank: int
    student_id: str
    name: str
    dept_code: Optional[str]
    year: Optional[int]
    section: Optional[str]
    score: int
    total_solved: int
    total_contests: int
    platforms: Tuple[PlatformBreakdown, ...]

    def platform(self, value: str) -> Optional[PlatformBreakdown]:
        for breakdown in self.platforms:
            if breakdown.platform == value:
                return breakdown
        return None


@dataclass(frozen=True)
class RankingFilter:
    """Cohort narrowing for ad-hoc (non-persisted) rankings."""
    dept_code: Optional[str] = None
    year: Optional[int] = None
    section: Optional[str] = None
    search: Optional[str] = None   # Case-insensitive match on name or roll number
    limit: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return (self.dept_code is None and self.year is None and self.section is None
                and not self.search and self.limit is None)
