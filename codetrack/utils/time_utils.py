from datetime import datetime, timedelta, timezone
from typing import Optional

import pytz

from codetrack.config import Config


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the form SQLite round-trips)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hours_ago(hours: float, now: datetime = None) -> datetime:
    """Naive UTC timestamp `hours` before `now`."""
    return (now or utcnow()) - timedelta(hours=hours)


def to_local(moment: Optional[datetime], timezone_name: str = None) -> Optional[datetime]:
    """Convert a UTC timestamp (naive or aware) to the display timezone (Config.TIMEZONE by default)."""
    if moment is None:
        return None
    if timezone_name is None:
        timezone_name = Config.TIMEZONE
    if moment.tzinfo is None:
        moment = pytz.utc.localize(moment)
    return moment.astimezone(pytz.timezone(timezone_name))
