"""Reddit-style hot ranking for posts.

Ported from reddit's ``r2/lib/db/_sorts.pyx``: the sign and order of
magnitude of the net vote count are combined with the post age so that
every tenfold increase in net votes is worth 12 hours of recency.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

HOT_EPOCH_OFFSET = 1577808000.0
HOT_DECAY_SECONDS = 43200.0


def epoch_seconds(date: datetime | float | int) -> float:
    """Seconds since the unix epoch; naive datetimes are treated as UTC."""

    if isinstance(date, datetime):
        if date.tzinfo is None:
            date = date.replace(tzinfo=timezone.utc)
        return date.timestamp()
    return float(date)


def hot(ups: int, downs: int, date: datetime | float | int, *, epoch_offset: float = HOT_EPOCH_OFFSET) -> float:
    """Hot rank for a post with the given vote counts created at ``date``."""

    s = ups - downs
    order = math.log10(max(abs(s), 1))
    sign = 1 if s > 0 else -1 if s < 0 else 0
    seconds = epoch_seconds(date) - epoch_offset
    return round(sign * order + seconds / HOT_DECAY_SECONDS, 7)


__all__ = ["hot", "epoch_seconds", "HOT_EPOCH_OFFSET"]
