from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from prayer_dispatch.errors import FormatError

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def parse_to_offset(time_string: str) -> int:
    """Parse ``HH:MM`` into minutes since local midnight."""
    if not isinstance(time_string, str):
        raise FormatError(f"Expected HH:MM string, got {time_string!r}")
    parts = time_string.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
        raise FormatError(f"Malformed time string: {time_string!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        raise FormatError(f"Time out of range: {time_string!r}")
    return hours * 60 + minutes


def format_offset(offset: int) -> str:
    offset %= MINUTES_PER_DAY
    return f"{offset // 60:02d}:{offset % 60:02d}"


def _zone(timezone_name: str | None):
    try:
        return ZoneInfo(timezone_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.warning("Unknown timezone %r, falling back to UTC", timezone_name)
        return timezone.utc


def local_now(timezone_name: str | None, now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(_zone(timezone_name))


def current_offset(timezone_name: str | None, now: datetime | None = None) -> int:
    local = local_now(timezone_name, now)
    return local.hour * 60 + local.minute


def local_date(timezone_name: str | None, now: datetime | None = None) -> date:
    return local_now(timezone_name, now).date()


def rollover_adjust(end_offset: int, start_offset: int) -> int:
    """Push ``end_offset`` into the next day when the interval crosses midnight."""
    if end_offset < start_offset:
        return end_offset + MINUTES_PER_DAY
    return end_offset
