"""
Echo - Connection Completion Gateway

Retires a limited chat: completes it into a full connection, archives
it, or rekindles the pair with a fresh invite. The open-ended connection
itself belongs to the match system, which listens for
``connection_completed``.
"""

import logging

from django.db import IntegrityError, transaction

from . import events
from . import exceptions
from .clock import SystemClock
from .invites import ResponseInviteManager
from .lifecycle import past_completion_window, refresh_chat
from .models import ChatStatus, LimitedChat, ResponseInvite
from .retry import store_retry

logger = logging.getLogger(__name__)

DEFAULT_REKINDLE_MESSAGE = "I'd love to continue this resonance."


class CompletionGateway:

    def __init__(self, clock=None, invites=None):
        self.clock = clock or SystemClock()
        self.invites = invites or ResponseInviteManager(self.clock)

    @store_retry
    def complete(self, chat_id, completer):
        now = self.clock.now()
        with transaction.atomic():
            chat = self._locked_for_participant(chat_id, completer)
            chat = refresh_chat(chat, now)
            if chat.status != ChatStatus.ACTIVE:
                raise exceptions.ChatExpired()
            if not chat.can_complete_connection:
                raise exceptions.NotEligible(
                    'This connection can be completed after seven days together.',
                    available_at=chat.connection_completion_available_at,
                )

            LimitedChat.objects.filter(pk=chat.pk, status=ChatStatus.ACTIVE).update(
                status=ChatStatus.COMPLETED, completed_at=now,
            )
            chat.refresh_from_db()
            events.emit(
                events.connection_completed, LimitedChat,
                chat_id=chat.pk, user1_id=chat.user1_id, user2_id=chat.user2_id,
                completed_at=now,
            )

        logger.info("Chat %s completed by %s", chat.pk, completer.pk)
        return chat

    @store_retry
    def archive(self, chat_id, actor):
        now = self.clock.now()
        with transaction.atomic():
            chat = self._locked_for_participant(chat_id, actor)
            chat = self._ensure_retirable(chat, now)
            if chat.status == ChatStatus.ARCHIVED:
                return chat
            self._archive(chat, actor, now)

        logger.info("Chat %s archived by %s", chat.pk, actor.pk)
        return chat

    @store_retry
    def rekindle(self, chat_id, actor, message=None):
        """
        Begin a new invite cycle for the same pair.

        The old chat is archived (if it was still open) rather than reused,
        so the new chat starts with clean counters.
        """
        now = self.clock.now()
        with transaction.atomic():
            chat = self._locked_for_participant(chat_id, actor)
            chat = self._ensure_retirable(chat, now)
            if ResponseInvite.objects.filter(rekindled_from=chat).exists():
                raise exceptions.AlreadyInvited('This chat has already been rekindled.')

            if chat.status == ChatStatus.ACTIVE:
                self._archive(chat, actor, now)
            try:
                with transaction.atomic():
                    invite = self.invites.create_rekindle_invite(
                        chat, actor, message or DEFAULT_REKINDLE_MESSAGE, now,
                    )
            except IntegrityError:
                raise exceptions.AlreadyInvited('This chat has already been rekindled.')

        logger.info("Chat %s rekindled by %s as invite %s", chat.pk, actor.pk, invite.pk)
        return invite

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _locked_for_participant(self, chat_id, user):
        try:
            chat = LimitedChat.objects.select_for_update().get(pk=chat_id)
        except LimitedChat.DoesNotExist:
            raise exceptions.NotFound('Chat not found.')
        if not chat.includes_user(user):
            raise exceptions.NotParticipant()
        return chat

    @staticmethod
    def _ensure_retirable(chat, now):
        chat = refresh_chat(chat, now)
        if chat.status == ChatStatus.COMPLETED:
            raise exceptions.NotEligible('This connection has already been completed.')
        if not past_completion_window(chat, now):
            raise exceptions.NotEligible(
                'Archive and rekindle open after seven days together.',
                available_at=chat.connection_completion_available_at,
            )
        return chat

    @staticmethod
    def _archive(chat, actor, now):
        LimitedChat.objects.filter(pk=chat.pk).exclude(status=ChatStatus.COMPLETED).update(
            status=ChatStatus.ARCHIVED, archived_at=now,
        )
        chat.refresh_from_db()
        events.emit(
            events.chat_archived, LimitedChat,
            chat_id=chat.pk, user1_id=chat.user1_id, user2_id=chat.user2_id,
            archived_at=now, archived_by_id=actor.pk,
        )
