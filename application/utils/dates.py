"""
UTC calendar helpers for same-day rules on captures, cancellations and refunds.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_day_older(timestamp: int, now: Optional[datetime] = None) -> bool:
    """True when `timestamp` falls on an earlier UTC calendar day than `now`.

    Compares `YYYYMMDD` strings, not elapsed hours: 23:59 and 00:01 of the next
    day are one day apart.
    """
    now = (now or utc_now()).astimezone(timezone.utc)
    then = datetime.fromtimestamp(int(timestamp or 0), tz=timezone.utc)
    return now.strftime("%Y%m%d") > then.strftime("%Y%m%d")
