"""
Echo - Bounded retry for transient store errors

Only database-level failures (lost connection, lock timeout,
serialization conflict) are retried. Domain rejections such as
DailyLimitReached are deliberate backpressure and pass straight through.
"""

import functools
import logging
import random
import time

from django.db import OperationalError

from .conf import echo_setting

logger = logging.getLogger(__name__)


def call_with_store_retries(fn, *, retries=None, base_delay=0.05):
    """
    Run ``fn`` (a whole atomic unit of work), retrying on OperationalError.

    Only wrap units whose writes are create-once or guarded updates, so
    replaying one that did commit cannot double-apply. Plain inserts
    (notes, chat messages) are not retried.
    """
    attempts = retries if retries is not None else echo_setting('STORE_RETRIES')
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return fn()
        except OperationalError as exc:
            if attempt + 1 >= attempts:
                logger.error("Store error after %d attempts: %s", attempts, exc)
                raise
            delay = random.uniform(base_delay, base_delay * 2) * (2 ** attempt)
            logger.warning(
                "Transient store error on attempt %d/%d, retrying in %.2fs: %s",
                attempt + 1, attempts, delay, exc,
            )
            time.sleep(delay)


def store_retry(fn):
    """Decorator form of call_with_store_retries."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        return call_with_store_retries(lambda: fn(*args, **kwargs))
    return wrapper
