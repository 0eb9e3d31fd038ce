"""Time helpers shared across the engine."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Optional

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything is stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def resolve_zone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown activity timezone %r; falling back to UTC", name)
        return ZoneInfo("UTC")


def local_date(moment: datetime, zone_name: Optional[str]) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(resolve_zone(zone_name)).date()


def age_on(birth_date: date, as_of: date) -> int:
    """Age in completed years."""
    years = as_of.year - birth_date.year
    if (as_of.month, as_of.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


__all__ = ["age_on", "ensure_aware", "local_date", "resolve_zone", "utcnow"]
