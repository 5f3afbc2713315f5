"""
Echo - Lifecycle phases and the sweep

A chat's phase is never stored. ``compute_phase`` derives it from the
chat's timestamps and status every time it is needed, so a phase read
from cold storage is always right.

``refresh_chat`` and ``LifecycleScheduler.sweep`` apply the two stored
time-driven transitions (completion eligibility, expiry). They are
idempotent, and every read path calls ``refresh_chat`` lazily, so a
missed sweep only delays the stored flags, never the behaviour.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from django.db import models, transaction

from .clock import SystemClock
from .models import ChatStatus, InviteStatus, LimitedChat, ResponseInvite

logger = logging.getLogger(__name__)

NUDGE_AFTER = timedelta(days=3)
COMPLETION_AFTER = timedelta(days=7)


class Phase(models.TextChoices):
    LISTENING = 'listening', 'Listening'
    NUDGE = 'nudge', 'Nudge'
    COMPLETION_MOMENT = 'completion_moment', 'Completion Moment'
    ARCHIVE_OR_REKINDLE = 'archive_or_rekindle', 'Archive or Rekindle'
    COMPLETED = 'completed', 'Completed'
    ARCHIVED = 'archived', 'Archived'
    EXPIRED = 'expired', 'Expired'


def chat_age(chat, now):
    return now - chat.created_at


def age_days(chat, now):
    """Whole days since the chat opened (never negative)."""
    return max(0, chat_age(chat, now) // timedelta(days=1))


def compute_phase(chat, now):
    """
    Derive the lifecycle phase. Pure: reads the chat, never writes it.

    Day 0-2 listening, day 3-6 nudge, day 7 completion moment,
    day 8 onwards archive-or-rekindle.
    """
    if chat.status == ChatStatus.COMPLETED:
        return Phase.COMPLETED
    if chat.status == ChatStatus.ARCHIVED:
        return Phase.ARCHIVED
    if chat.status == ChatStatus.EXPIRED or now >= chat.expires_at:
        return Phase.EXPIRED

    days = age_days(chat, now)
    if days < NUDGE_AFTER.days:
        return Phase.LISTENING
    if days < COMPLETION_AFTER.days:
        return Phase.NUDGE
    if days == COMPLETION_AFTER.days:
        return Phase.COMPLETION_MOMENT
    return Phase.ARCHIVE_OR_REKINDLE


def is_nudge_day(chat, now):
    """True on the day the "keep listening" nudge is shown."""
    return chat.status == ChatStatus.ACTIVE and age_days(chat, now) == NUDGE_AFTER.days


def completion_due(chat, now):
    return now - chat.created_at >= COMPLETION_AFTER


def past_completion_window(chat, now):
    """Archive and rekindle open strictly after seven days."""
    return now - chat.created_at > COMPLETION_AFTER


def refresh_chat(chat, now):
    """
    Bring one chat's stored flags up to date with ``now``.

    Flips ``can_complete_connection`` on (never off) and expires the chat
    once ``expires_at`` is reached. Both writes are guarded so they are
    safe against a concurrent sweep. Returns the chat, reloaded if it changed.
    """
    if chat.status != ChatStatus.ACTIVE:
        return chat

    changed = False
    if not chat.can_complete_connection and completion_due(chat, now):
        changed |= bool(
            LimitedChat.objects
            .filter(pk=chat.pk, status=ChatStatus.ACTIVE, can_complete_connection=False)
            .update(can_complete_connection=True)
        )
    if now >= chat.expires_at:
        expired = (
            LimitedChat.objects
            .filter(pk=chat.pk, status=ChatStatus.ACTIVE)
            .update(status=ChatStatus.EXPIRED)
        )
        if expired:
            logger.info("Chat %s expired", chat.pk)
            changed = True

    if changed:
        chat.refresh_from_db()
    return chat


def expire_stale_invites(now):
    """Mark pending invites past their expiry as expired. Returns the count."""
    return (
        ResponseInvite.objects
        .filter(status=InviteStatus.PENDING, expires_at__lt=now)
        .update(status=InviteStatus.EXPIRED)
    )


@dataclass
class SweepResult:
    eligible: int = 0
    expired_chats: int = 0
    expired_invites: int = 0

    @property
    def changed(self):
        return self.eligible + self.expired_chats + self.expired_invites


class LifecycleScheduler:
    """
    Periodic recomputation of time-driven flags for every active chat.

    An optimisation, not a correctness dependency: reads refresh lazily.
    """

    def __init__(self, clock=None):
        self.clock = clock or SystemClock()

    def pending(self, now=None):
        """What a sweep at ``now`` would change, without writing."""
        now = now or self.clock.now()
        active = LimitedChat.objects.filter(status=ChatStatus.ACTIVE)
        return SweepResult(
            eligible=active.filter(
                can_complete_connection=False,
                connection_completion_available_at__lte=now,
            ).count(),
            expired_chats=active.filter(expires_at__lte=now).count(),
            expired_invites=ResponseInvite.objects.filter(
                status=InviteStatus.PENDING, expires_at__lt=now,
            ).count(),
        )

    def sweep(self, now=None):
        now = now or self.clock.now()
        with transaction.atomic():
            active = LimitedChat.objects.filter(status=ChatStatus.ACTIVE)
            eligible = active.filter(
                can_complete_connection=False,
                connection_completion_available_at__lte=now,
            ).update(can_complete_connection=True)
            expired_chats = active.filter(expires_at__lte=now).update(status=ChatStatus.EXPIRED)
            expired_invites = expire_stale_invites(now)

        result = SweepResult(eligible, expired_chats, expired_invites)
        if result.changed:
            logger.info(
                "Lifecycle sweep at %s: %d eligible, %d chats expired, %d invites expired",
                now.isoformat(), eligible, expired_chats, expired_invites,
            )
        else:
            logger.debug("Lifecycle sweep at %s: nothing to do", now.isoformat())
        return result


def completion_available_at(created_at):
    return created_at + COMPLETION_AFTER
