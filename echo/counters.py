"""
Echo - Daily Counter Store

Per-(user, UTC day) message counters with an atomic check-and-increment.

The quota check and the increment are one guarded UPDATE
(``... SET count = count + 1 WHERE count < limit``), so concurrent
callers for the same key can never both pass the check and overshoot.
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import F

from .clock import SystemClock, utc_day
from .conf import echo_setting
from .models import DailyMessageCounter

logger = logging.getLogger(__name__)


def _user_id(user):
    return getattr(user, 'pk', user)


class DailyCounterStore:
    """Atomic, day-keyed quota tracking."""

    def __init__(self, clock=None):
        self.clock = clock or SystemClock()

    def try_increment(self, user, day, limit):
        """
        Count one send for ``user`` on ``day`` if it fits under ``limit``.

        Returns ``(allowed, remaining)``. A rejected call writes nothing.
        ``limit=None`` records the send without a cap; remaining is then None.
        """
        user_id = _user_id(user)
        if limit is not None and limit <= 0:
            return False, 0

        row = DailyMessageCounter.objects.filter(user_id=user_id, date=day)
        guarded = row if limit is None else row.filter(count__lt=limit)

        with transaction.atomic():
            if guarded.update(count=F('count') + 1):
                return True, self._remaining_from_row(row, limit)

            if not row.exists():
                try:
                    with transaction.atomic():
                        DailyMessageCounter.objects.create(user_id=user_id, date=day, count=1)
                    return True, None if limit is None else limit - 1
                except IntegrityError:
                    # Another caller created today's row first
                    if guarded.update(count=F('count') + 1):
                        return True, self._remaining_from_row(row, limit)

        logger.debug("Daily quota exhausted for user=%s day=%s limit=%s", user_id, day, limit)
        return False, 0

    def count(self, user, day):
        """Messages counted for ``user`` on ``day`` (0 if the row doesn't exist yet)."""
        value = (
            DailyMessageCounter.objects
            .filter(user_id=_user_id(user), date=day)
            .values_list('count', flat=True)
            .first()
        )
        return value or 0

    def remaining(self, user, day, limit):
        if limit is None:
            return None
        return max(0, limit - self.count(user, day))

    # =========================================================================
    # CLOCK-DRIVEN HELPERS
    # =========================================================================

    def today(self):
        return utc_day(self.clock.now())

    def record_send(self, user):
        """Count an accepted send that is governed by some other cap."""
        return self.try_increment(user, self.today(), None)

    def free_tier_remaining(self, user):
        """Remaining free-tier messages for ``user`` today, computed fresh."""
        return self.remaining(user, self.today(), echo_setting('FREE_TIER_DAILY_LIMIT'))

    @staticmethod
    def _remaining_from_row(row, limit):
        if limit is None:
            return None
        current = row.values_list('count', flat=True).get()
        return max(0, limit - current)
