"""
Retry with exponential backoff, as a decorator.
Only for idempotent calls (token fetches); never wrap an STK push with it.
"""

import functools
import logging
import time
from typing import Tuple, Type

from ..utils.errors import RetryExhaustedError

logger = logging.getLogger(__name__)


def retry(
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    tries: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    sleep=None,
):
    """
    - exceptions: exception types that trigger another attempt
    - tries: total number of attempts
    - delay: initial wait between attempts (seconds)
    - backoff: multiplier applied to delay after each failure
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            _tries, _delay = tries, delay
            last_exc = None
            while _tries > 0:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exc = e
                    _tries -= 1
                    if _tries <= 0:
                        break
                    logger.warning("[retry] %s failed (%s), retrying in %.1fs...", func.__name__, e, _delay)
                    (sleep or time.sleep)(_delay)
                    _delay *= backoff
            raise RetryExhaustedError(f"{func.__name__} failed after {tries} tries") from last_exc
        return wrapper
    return decorator
