"""
Runtime settings for codetrack.

Settings live in the `configurations` table as JSON values keyed by
"<category>.<name>" and are cached in memory. Services read them through the
typed properties below on every call, so an administrator's change applies to
the next sync, selection or refresh without a restart. Every change is
validated against the seeded defaults and written to the audit log.
"""

import json
import logging
from numbers import Real
from typing import Any, Dict, Optional

from sqlalchemy import select

from codetrack.config import Config
from codetrack.database.models import AuditLog, Configuration
from codetrack.services.base import BaseService
from codetrack.services.seed_configurations import INITIAL_CONFIGS
from codetrack.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

# Numeric settings that may legitimately be zero
ZERO_ALLOWED = {'sync.backoff_seconds', 'sync.cooldown_hours'}


def validate_setting(key: str, value: Any) -> Any:
    """Check `value` against the type of the seeded default and return it normalised."""
    if key not in INITIAL_CONFIGS:
        raise ValidationError(key, f"Unknown setting '{key}'")
    default = INITIAL_CONFIGS[key]

    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ValidationError(key, "Value must be true or false")
        return value

    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError(key, "Value must be a number")
    if isinstance(default, int) and not float(value).is_integer():
        raise ValidationError(key, "Value must be a whole number")
    if value < 0 or (value == 0 and key not in ZERO_ALLOWED):
        raise ValidationError(key, "Value must be positive")
    return int(value) if isinstance(default, int) else float(value)


class ConfigurationService(BaseService):
    """Cached, audited runtime settings."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self._cache: Dict[str, Any] = {}

    async def load_all(self):
        """Replace the cache with what is stored; undecodable rows are skipped."""
        loaded = {}
        async with self.get_session() as session:
            result = await session.execute(select(Configuration))
            for row in result.scalars().all():
                try:
                    loaded[row.key] = json.loads(row.value)
                except json.JSONDecodeError:
                    logger.warning(f"Invalid JSON for setting '{row.key}', skipping")

        self._cache = loaded
        logger.info(f"Loaded {len(self._cache)} settings")

    def get(self, key: str, default: Any = None) -> Any:
        return self._cache.get(key, default)

    def get_by_category(self, category: str) -> Dict[str, Any]:
        """Settings of one category keyed by their short name, e.g. 'sync' -> {'workers': 5}."""
        prefix = f"{category}."
        return {key[len(prefix):]: value for key, value in self._cache.items() if key.startswith(prefix)}

    async def set(self, key: str, value: Any, user_id: Optional[str]) -> Any:
        """
        Validate, persist and audit one setting.

        Args:
            key: Setting key (e.g. 'sync.max_attempts')
            value: New value; must match the type of the seeded default
            user_id: Administrator id for the audit trail

        Returns:
            The previous value (None if the setting was never stored)

        Raises:
            ValidationError: unknown key or a value of the wrong type or range
        """
        value = validate_setting(key, value)

        async with self.get_session() as session:
            row = await session.get(Configuration, key)
            old_value = self._decode(row.value) if row else None
            if row is None:
                session.add(Configuration(key=key, value=json.dumps(value)))
            else:
                row.value = json.dumps(value)

            session.add(AuditLog(
                user_id=str(user_id) if user_id is not None else None,
                action='config_set',
                details=json.dumps({'key': key, 'old_value': old_value, 'new_value': value})
            ))

        self._cache[key] = value
        logger.info(f"[CONFIG] {key}: {old_value} -> {value} (by {user_id})")
        return old_value

    @staticmethod
    def _decode(raw: str) -> Any:
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return {"error": "invalid JSON", "raw": raw}

    # Typed settings read by the services

    @property
    def verification_required(self) -> bool:
        """Whether newly submitted links wait for reviewer approval."""
        return bool(self.get('verification.required', Config.VERIFICATION_REQUIRED))

    @property
    def sync_max_attempts(self) -> int:
        return int(self.get('sync.max_attempts', Config.SYNC_MAX_ATTEMPTS))

    @property
    def sync_backoff_seconds(self) -> float:
        return float(self.get('sync.backoff_seconds', Config.SYNC_BACKOFF_SECONDS))

    @property
    def sync_workers(self) -> int:
        return int(self.get('sync.workers', Config.SYNC_WORKERS))

    @property
    def cooldown_hours(self) -> float:
        return float(self.get('sync.cooldown_hours', Config.SUSPENSION_COOLDOWN_HOURS))

    @property
    def sync_interval_hours(self) -> float:
        return float(self.get('scheduler.sync_interval_hours', Config.SYNC_INTERVAL_HOURS))

    @property
    def ranking_interval_hours(self) -> float:
        return float(self.get('scheduler.ranking_interval_hours', Config.RANKING_INTERVAL_HOURS))

    @property
    def refresh_limit(self) -> int:
        return int(self.get('refresh.limit', Config.MANUAL_REFRESH_LIMIT))

    @property
    def refresh_window_seconds(self) -> int:
        return int(self.get('refresh.window_seconds', Config.MANUAL_REFRESH_WINDOW))
