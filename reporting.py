"""Month buckets for the dashboard trends (last N calendar months, oldest first)."""

from datetime import datetime
from typing import Iterable, List, Optional

from models import utcnow

TREND_MONTHS = 6


def months_ago(when: datetime, now: datetime) -> int:
    return (now.year - when.year) * 12 + (now.month - when.month)


def month_labels(now: Optional[datetime] = None, count: int = TREND_MONTHS) -> List[str]:
    now = now or utcnow()
    labels = []
    for back in range(count - 1, -1, -1):
        year, month = divmod(now.year * 12 + now.month - 1 - back, 12)
        labels.append(datetime(year, month + 1, 1).strftime("%b"))
    return labels


def monthly_counts(
    timestamps: Iterable[datetime],
    now: Optional[datetime] = None,
    count: int = TREND_MONTHS,
) -> List[int]:
    """How many timestamps fall in each of the last ``count`` months."""
    now = now or utcnow()
    buckets = [0] * count
    for ts in timestamps:
        back = months_ago(ts, now)
        if 0 <= back < count:
            buckets[count - 1 - back] += 1
    return buckets


def cumulative(buckets: List[int], total: int) -> List[int]:
    """
    Running totals ending at ``total``: whatever happened before the window is
    the starting point.
    """
    running = total - sum(buckets)
    history = []
    for added in buckets:
        running += added
        history.append(running)
    return history
