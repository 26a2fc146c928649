"""Time utilities for consistent timestamp handling."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

_WEEKDAYS_ZH = ("一", "二", "三", "四", "五", "六", "日")


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime, tz_name: str) -> datetime:
    """Attach ``tz_name`` to a naive datetime; aware values pass through."""
    if value.tzinfo is None:
        return value.replace(tzinfo=ZoneInfo(tz_name))
    return value


def local_datetime_string(now: datetime, tz_name: str) -> str:
    """Render ``now`` as the caller would read it on a wall clock.

    Example: ``2026/10/18 (週日) 14:05``.
    """
    local = now.astimezone(ZoneInfo(tz_name))
    weekday = _WEEKDAYS_ZH[local.weekday()]
    return f"{local:%Y/%m/%d} (週{weekday}) {local:%H:%M}"


def format_local(value: datetime, tz_name: str) -> str:
    """Format a timestamp for chat replies, e.g. ``2026/10/19 15:00``."""
    return f"{value.astimezone(ZoneInfo(tz_name)):%Y/%m/%d %H:%M}"
