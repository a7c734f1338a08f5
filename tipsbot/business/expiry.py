"""
Expiry of a paid grant.
Pure: no I/O, `now` is always passed in.
"""

from datetime import date, datetime, timedelta
from typing import Optional, Union

DEFAULT_WINDOW_DAYS = 7

GrantDate = Union[date, datetime, None]


def _as_datetime(grant_date: Union[date, datetime], now: datetime) -> datetime:
    """A calendar date starts at midnight, in the same zone as `now`."""
    if isinstance(grant_date, datetime):
        start = grant_date
    else:
        start = datetime(grant_date.year, grant_date.month, grant_date.day)

    if now.tzinfo is not None and start.tzinfo is None:
        # pytz zones need localize(), plain tzinfo objects take replace()
        localize = getattr(now.tzinfo, "localize", None)
        start = localize(start) if localize else start.replace(tzinfo=now.tzinfo)
    elif now.tzinfo is None and start.tzinfo is not None:
        # naive `now` is local time
        start = start.astimezone().replace(tzinfo=None)
    return start


def is_expired(grant_date: GrantDate, now: datetime, window_days: Optional[int] = None) -> bool:
    """
    True if a grant made on `grant_date` no longer entitles at `now`.

    - no grant -> expired
    - elapsed >= window_days -> expired (exactly 7.0 days counts)
    - `now` before the grant (clock skew) -> not expired
    """
    if grant_date is None:
        return True
    if window_days is None:
        window_days = DEFAULT_WINDOW_DAYS

    elapsed = now - _as_datetime(grant_date, now)
    if elapsed < timedelta(0):
        return False
    return elapsed >= timedelta(days=window_days)
