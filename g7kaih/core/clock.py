"""
Timezone-anchored clock.

Every "today" in the service comes from here so the submission date stored
on an activity and the date the gate checks against always agree.
"""

from datetime import date, datetime, timezone
from typing import Callable, Optional

from dateutil import tz

from g7kaih.core.config import settings

Clock = Callable[[], datetime]


def local_zone(name: Optional[str] = None):
    zone = tz.gettz(name or settings.TIMEZONE)
    if zone is None:
        raise ValueError(f"Unknown timezone: {name or settings.TIMEZONE}")
    return zone


def now() -> datetime:
    """Current instant in the configured timezone."""
    return datetime.now(timezone.utc).astimezone(local_zone())


def today(clock: Optional[Clock] = None) -> date:
    current = clock() if clock else now()
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(local_zone()).date()
