from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from ..config import get_settings

LOCAL_TZ = ZoneInfo(get_settings().timezone)


def local_now() -> datetime:
    """Current restaurant wall-clock time as a naive datetime."""
    return datetime.now(LOCAL_TZ).replace(tzinfo=None)


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_local_naive(dt: datetime) -> datetime:
    """Aware datetimes are converted to local time; naive ones are taken as local already."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(LOCAL_TZ).replace(tzinfo=None)


def local_naive_to_aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=LOCAL_TZ)
