from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from .models import Interval

INTERVAL_MINUTES = 5


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def next_interval(now: Optional[datetime] = None, minutes: int = INTERVAL_MINUTES) -> Interval:
    """Next aligned window that a freshly generated signal is valid for.

    The minute is rounded up to the next multiple of ``minutes``; 60 rolls
    into the next hour. When ``now`` sits exactly on a boundary (zero seconds
    and microseconds) the window starts one interval later, so 12:05:00.000
    gives 12:10. A timestamp such as 12:05:30 keeps the 12:05 start because
    its minute is already aligned.
    """
    now = now or utc_now()
    top_of_hour = now.replace(minute=0, second=0, microsecond=0)
    aligned = math.ceil(now.minute / minutes) * minutes
    start = top_of_hour + timedelta(minutes=aligned)

    if now.second == 0 and now.microsecond == 0 and now.minute % minutes == 0:
        start = top_of_hour + timedelta(minutes=now.minute + minutes)

    return Interval(start=start, end=start + timedelta(minutes=minutes))


def time_until_next_interval(now: Optional[datetime] = None, minutes: int = INTERVAL_MINUTES) -> timedelta:
    now = now or utc_now()
    return next_interval(now, minutes).start - now


def to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)
