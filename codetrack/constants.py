"""
Tracker-wide constants.

Metric ownership lives here so the grading rule, the orchestrator's partial
writes and the ranking breakdown all agree on which platform owns which
PerformanceRecord column.
"""

class PlatformConstants:
    """Metric columns owned by each platform (keyed by platform value)."""

    PLATFORM_METRICS = {
        'leetcode': ('easy_lc', 'medium_lc', 'hard_lc', 'contests_lc', 'badges_lc'),
        'codechef': ('problems_cc', 'contests_cc', 'stars_cc', 'badges_cc'),
        'geeksforgeeks': ('school_gfg', 'basic_gfg', 'easy_gfg', 'medium_gfg', 'hard_gfg', 'contests_gfg'),
        'hackerrank': ('stars_hr', 'badges_hr'),
        'github': ('repos_gh', 'contributions_gh'),
    }

    # Non-scored columns an adapter may also write
    PLATFORM_EXTRA_FIELDS = {
        'hackerrank': ('badges_list_hr',),
    }

    DISPLAY_NAMES = {
        'leetcode': 'LeetCode',
        'codechef': 'CodeChef',
        'geeksforgeeks': 'GeeksforGeeks',
        'hackerrank': 'HackerRank',
        'github': 'GitHub',
    }

    @classmethod
    def all_metrics(cls):
        """Every scored metric in a stable order."""
        return [metric for metrics in cls.PLATFORM_METRICS.values() for metric in metrics]

    @classmethod
    def owner_of(cls, metric: str):
        """Return the platform value owning a metric, or None if unknown."""
        for platform, metrics in cls.PLATFORM_METRICS.items():
            if metric in metrics:
                return platform
        return None


class BreakdownConstants:
    """Per-platform labels for the enriched ranking view."""

    LABELS = {
        'leetcode': {'easy': 'easy_lc', 'medium': 'medium_lc', 'hard': 'hard_lc',
                     'contests': 'contests_lc', 'badges': 'badges_lc'},
        'codechef': {'problems': 'problems_cc', 'contests': 'contests_cc',
                     'stars': 'stars_cc', 'badges': 'badges_cc'},
        'geeksforgeeks': {'school': 'school_gfg', 'basic': 'basic_gfg', 'easy': 'easy_gfg',
                          'medium': 'medium_gfg', 'hard': 'hard_gfg', 'contests': 'contests_gfg'},
        'hackerrank': {'stars': 'stars_hr', 'badges': 'badges_hr'},
        'github': {'repos': 'repos_gh', 'contributions': 'contributions_gh'},
    }

    SOLVED_METRICS = (
        'easy_lc', 'medium_lc', 'hard_lc',
        'school_gfg', 'basic_gfg', 'easy_gfg', 'medium_gfg', 'hard_gfg',
        'problems_cc',
    )

    CONTEST_METRICS = ('contests_lc', 'contests_cc', 'contests_gfg')


class SyncConstants:
    """Notification texts emitted by the sync orchestrator."""

    SUSPENDED_TITLE = "{name} Profile Suspended"
    SUSPENDED_MESSAGE = (
        "Your {name} profile is temporarily suspended due to connection issues. "
        "We'll retry automatically."
    )
    REACTIVATED_TITLE = "{name} Profile Reactivated"
    REACTIVATED_MESSAGE = (
        "Your {name} profile has been successfully reactivated and is now being tracked."
    )
