"""Date helpers shared by the aggregators and detectors."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import List
from zoneinfo import ZoneInfo

from lifecoach.core.config import settings


def local_now() -> datetime:
    return datetime.now(ZoneInfo(settings.timezone))


def week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def last_days(day: date, count: int = 7) -> List[date]:
    """Return ``count`` dates ending at ``day``, newest first."""
    return [day - timedelta(days=offset) for offset in range(count)]


def time_of_day(now: datetime) -> str:
    hour = now.hour
    if hour < 6:
        return "late night"
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    if hour < 21:
        return "evening"
    return "night"
