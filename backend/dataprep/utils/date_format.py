from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

DEFAULT_DATE_PATTERN = "%m-%d-%Y %H:%M"


def format_timestamp(
    epoch_millis: int,
    tz_name: Optional[str] = "UTC",
    pattern: str = DEFAULT_DATE_PATTERN,
) -> str:
    """Render epoch milliseconds in ``tz_name``. Stateless, safe for concurrent callers."""
    tz = timezone.utc if tz_name in (None, "", "UTC") else ZoneInfo(tz_name)
    return datetime.fromtimestamp(epoch_millis / 1000, tz=tz).strftime(pattern)
