"""
Time helpers.
Grant dates are calendar dates in the bot's timezone, so "today" must be
computed in that zone and not in the server's.
"""

from datetime import date, datetime

import pytz

from ..settings import settings


def bot_tz():
    return pytz.timezone(settings.BOT_TIMEZONE)


def now() -> datetime:
    """Timezone-aware current time in the bot's timezone."""
    return datetime.now(pytz.utc).astimezone(bot_tz())


def today() -> date:
    return now().date()
