from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def resolve_zone(timezone_id: str | None) -> ZoneInfo | None:
    value = (timezone_id or "").strip()
    if not value:
        return None

    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None


def is_valid_timezone(timezone_id: str | None) -> bool:
    return resolve_zone(timezone_id) is not None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
