"""
Echo - Limited Chat Engine

Owns the bounded conversation opened when an invite is accepted:
character limits, pacing, the per-chat daily cap, and expiry.

State per chat::

    active --(age >= 7d)--> active + can_complete_connection
    active --(now >= expires_at)--> expired
    active --(complete)--> completed       (see completion.py)
    active --(archive)--> archived         (see completion.py)
"""

import logging
from datetime import timedelta

from django.db import IntegrityError, transaction
from django.db.models import Case, F, Q, Value, When

from . import events
from . import exceptions
from .clock import SystemClock, start_of_next_utc_day, utc_day
from .conf import echo_setting
from .counters import DailyCounterStore
from .lifecycle import completion_available_at, refresh_chat
from .models import ChatStatus, LimitedChat, LimitedMessage
from .retry import store_retry

logger = logging.getLogger(__name__)


class LimitedChatEngine:

    def __init__(self, clock=None, counters=None):
        self.clock = clock or SystemClock()
        self.counters = counters or DailyCounterStore(self.clock)

    # =========================================================================
    # CREATION (called by the invite manager inside its accept transaction)
    # =========================================================================

    def open_chat(self, invite, now):
        """
        Create the chat for an accepted invite.

        Must run inside the caller's transaction: if this raises, the
        invite's acceptance rolls back with it.
        """
        enforced = echo_setting('SINGLE_THREAD_ENFORCED')
        if enforced:
            # Let a stale chat between the same pair finish expiring first
            LimitedChat.active_between(invite.sender_id, invite.recipient_id).filter(
                expires_at__lte=now,
            ).update(status=ChatStatus.EXPIRED)
            if LimitedChat.active_between(invite.sender_id, invite.recipient_id).filter(
                single_thread_enforced=True,
            ).exists():
                raise exceptions.ActiveChatExists()

        try:
            with transaction.atomic():
                chat = LimitedChat.objects.create(
                    response_invite=invite,
                    user1_id=invite.sender_id,
                    user2_id=invite.recipient_id,
                    created_at=now,
                    expires_at=now + timedelta(days=echo_setting('CHAT_TTL_DAYS')),
                    daily_message_limit=echo_setting('CHAT_DAILY_MESSAGE_LIMIT'),
                    character_limit=echo_setting('CHAT_CHARACTER_LIMIT'),
                    message_pace_hours=echo_setting('CHAT_MESSAGE_PACE_HOURS'),
                    connection_completion_available_at=completion_available_at(now),
                    single_thread_enforced=enforced,
                )
        except IntegrityError:
            # A concurrent accept opened a chat for this pair first
            raise exceptions.ActiveChatExists()

        events.emit(
            events.chat_created, LimitedChat,
            chat_id=chat.pk, invite_id=invite.pk,
            user1_id=chat.user1_id, user2_id=chat.user2_id,
            created_at=chat.created_at, expires_at=chat.expires_at,
        )
        return chat

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, chat_id):
        try:
            return LimitedChat.objects.get(pk=chat_id)
        except LimitedChat.DoesNotExist:
            raise exceptions.NotFound('Chat not found.')

    def get_for_participant(self, chat_id, user):
        """Load a chat for one of its participants, refreshed to now."""
        chat = self.get(chat_id)
        if not chat.includes_user(user):
            raise exceptions.NotParticipant()
        return refresh_chat(chat, self.clock.now())

    def chats_for(self, user):
        now = self.clock.now()
        return [refresh_chat(chat, now) for chat in LimitedChat.for_user(user)]

    def messages(self, chat_id, reader):
        chat = self.get_for_participant(chat_id, reader)
        return chat.messages.order_by('created_at', 'id')

    def remaining_today(self, chat, now=None):
        """Messages still allowed in this chat today. Computed on every read."""
        now = now or self.clock.now()
        if not chat.is_open(now):
            return 0
        if chat.last_message_date != utc_day(now):
            return chat.daily_message_limit
        return max(0, chat.daily_message_limit - chat.message_count)

    def next_message_at(self, chat, sender, now=None):
        """When ``sender`` may next post under the pacing rule (None = now)."""
        if not chat.message_pace_hours:
            return None
        now = now or self.clock.now()
        last = self._last_sent_at(chat, sender)
        if last is None:
            return None
        ready = last + timedelta(hours=chat.message_pace_hours)
        return ready if ready > now else None

    @store_retry
    def mark_read(self, chat_id, reader):
        """Mark the other participant's messages read. Returns how many changed."""
        chat = self.get_for_participant(chat_id, reader)
        return (
            LimitedMessage.objects
            .filter(chat=chat, is_read=False)
            .exclude(sender_id=reader.pk)
            .update(is_read=True)
        )

    # =========================================================================
    # SENDING
    # =========================================================================

    def send_message(self, chat_id, sender, text):
        """
        Post a message, enforcing (in order): participation, expiry,
        length, pacing, and the chat's daily cap.

        The cap check and increment are a single guarded UPDATE on the
        locked chat row, committed together with the message.
        """
        now = self.clock.now()
        today = utc_day(now)
        text = text or ''

        # Persist a lapsed expiry outside the send transaction, which a
        # ChatExpired rejection would otherwise roll back
        refresh_chat(self.get(chat_id), now)

        with transaction.atomic():
            chat = self._locked(chat_id)
            if not chat.includes_user(sender):
                raise exceptions.NotParticipant()

            chat = refresh_chat(chat, now)
            if not chat.is_open(now):
                raise exceptions.ChatExpired()

            if not text.strip():
                raise exceptions.ValidationError('Messages cannot be empty.', field='text')
            if len(text) > chat.character_limit:
                raise exceptions.MessageTooLong(
                    f'Messages in this chat are limited to {chat.character_limit} characters.',
                    character_limit=chat.character_limit,
                )

            if chat.message_pace_hours:
                last = self._last_sent_at(chat, sender)
                if last is not None:
                    ready = last + timedelta(hours=chat.message_pace_hours)
                    if now < ready:
                        raise exceptions.TooSoon(retry_at=ready)

            bumped = (
                LimitedChat.objects
                .filter(pk=chat.pk, status=ChatStatus.ACTIVE)
                .filter(
                    Q(last_message_date=today, message_count__lt=F('daily_message_limit'))
                    | Q(last_message_date__isnull=True)
                    | ~Q(last_message_date=today)
                )
                .update(
                    message_count=Case(
                        When(last_message_date=today, then=F('message_count') + 1),
                        default=Value(1),
                    ),
                    last_message_date=today,
                )
            )
            if not bumped:
                logger.info("Chat %s: daily limit reached for sender %s", chat.pk, sender.pk)
                raise exceptions.DailyLimitReached(retry_at=start_of_next_utc_day(now))

            message = LimitedMessage.objects.create(
                chat=chat,
                sender=sender,
                text=text,
                created_at=now,
            )
            # Chat sends are capped per chat, not by the sender's tier
            self.counters.try_increment(sender, today, None)

        logger.debug("Chat %s: message %s from %s", chat.pk, message.pk, sender.pk)
        return message

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _locked(self, chat_id):
        try:
            return LimitedChat.objects.select_for_update().get(pk=chat_id)
        except LimitedChat.DoesNotExist:
            raise exceptions.NotFound('Chat not found.')

    @staticmethod
    def _last_sent_at(chat, sender):
        return (
            LimitedMessage.objects
            .filter(chat=chat, sender_id=sender.pk)
            .order_by('-created_at', '-id')
            .values_list('created_at', flat=True)
            .first()
        )
