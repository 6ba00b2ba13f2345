from datetime import datetime, timezone
from typing import Optional, Tuple


def utcnow() -> datetime:
    # Naive UTC keeps comparisons consistent across sqlite and Postgres columns.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_ts(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def month_bounds(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    current = normalize_ts(now) or utcnow()
    start = datetime(current.year, current.month, 1)
    if current.month == 12:
        end = datetime(current.year + 1, 1, 1)
    else:
        end = datetime(current.year, current.month + 1, 1)
    return start, end
