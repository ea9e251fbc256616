"""Wall-clock helpers: all stored timestamps are naive local times in APP_TIMEZONE"""

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import APP_TIMEZONE

LOCAL_TZ = ZoneInfo(APP_TIMEZONE)


def local_now() -> datetime:
    return datetime.now(LOCAL_TZ).replace(tzinfo=None)


def to_local_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """Aware datetimes are converted into the local zone; naive ones are taken as local already"""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(LOCAL_TZ).replace(tzinfo=None)
