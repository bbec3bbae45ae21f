"""
Time helpers.

Timestamps are stored in UTC; promotion weekdays are evaluated in the
store's local timezone.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from shared.config.settings import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def store_now() -> datetime:
    """Current time in the store timezone."""
    return datetime.now(ZoneInfo(settings.store_timezone))
