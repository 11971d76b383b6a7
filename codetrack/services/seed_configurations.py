"""
Seed data for runtime configuration and the grading rule.

Inserted by Database.initialize_default_data() on first start; existing rows
are never overwritten so administrator changes survive restarts.
"""

from codetrack.config import Config

# Runtime configuration (JSON values, keyed by "<category>.<name>")
INITIAL_CONFIGS = {
    # Verification workflow
    'verification.required': Config.VERIFICATION_REQUIRED,

    # Sync orchestrator
    'sync.max_attempts': Config.SYNC_MAX_ATTEMPTS,
    'sync.backoff_seconds': Config.SYNC_BACKOFF_SECONDS,
    'sync.workers': Config.SYNC_WORKERS,
    'sync.cooldown_hours': Config.SUSPENSION_COOLDOWN_HOURS,

    # Scheduler cadences
    'scheduler.sync_interval_hours': Config.SYNC_INTERVAL_HOURS,
    'scheduler.ranking_interval_hours': Config.RANKING_INTERVAL_HOURS,

    # Manual refresh throttling
    'refresh.limit': Config.MANUAL_REFRESH_LIMIT,
    'refresh.window_seconds': Config.MANUAL_REFRESH_WINDOW,
}

# Points per unit of each metric
DEFAULT_GRADING_POINTS = {
    # LeetCode
    'easy_lc': 1,
    'medium_lc': 3,
    'hard_lc': 5,
    'contests_lc': 2,
    'badges_lc': 2,

    # CodeChef
    'problems_cc': 2,
    'contests_cc': 3,
    'stars_cc': 5,
    'badges_cc': 2,

    # GeeksforGeeks
    'school_gfg': 1,
    'basic_gfg': 1,
    'easy_gfg': 1,
    'medium_gfg': 3,
    'hard_gfg': 5,
    'contests_gfg': 2,

    # HackerRank
    'stars_hr': 5,
    'badges_hr': 2,

    # GitHub
    'repos_gh': 5,
    'contributions_gh': 1,
}
