"""
Echo - Response Invite Manager

Turns a quiet note into a time-bounded invitation, and an accepted
invitation into a limited chat. Acceptance and chat creation commit
together or not at all.
"""

import logging
from datetime import timedelta

from django.db import transaction
from django.db.models import Q

from . import events
from . import exceptions
from .chats import LimitedChatEngine
from .clock import SystemClock
from .conf import echo_setting
from .lifecycle import expire_stale_invites
from .models import InviteStatus, ResponseInvite
from .notes import QuietNoteInbox
from .retry import store_retry

logger = logging.getLogger(__name__)


def clean_invite_message(message):
    message = (message or '').strip()
    max_length = echo_setting('INVITE_MESSAGE_MAX_LENGTH')
    if not message:
        raise exceptions.ValidationError('Add a few words to your invitation.', field='message')
    if len(message) > max_length:
        raise exceptions.ValidationError(
            f'Invitations are limited to {max_length} characters.',
            field='message', max_length=max_length,
        )
    return message


class ResponseInviteManager:

    def __init__(self, clock=None, inbox=None, chats=None):
        self.clock = clock or SystemClock()
        self.inbox = inbox or QuietNoteInbox(self.clock)
        self.chats = chats or LimitedChatEngine(self.clock)

    def invite_ttl(self):
        return timedelta(hours=echo_setting('INVITE_TTL_HOURS'))

    # =========================================================================
    # CREATE
    # =========================================================================

    @store_retry
    def create_invite(self, quiet_note_id, responder, message):
        """
        Respond to a received note with an invitation to chat.

        Only the note's recipient may respond, and only once per note.
        """
        note = self.inbox.get(quiet_note_id)
        if note.recipient_id != responder.pk:
            raise exceptions.NotRecipient('Only the person who received this echo can respond to it.')
        if note.invite_sent:
            raise exceptions.AlreadyInvited()
        message = clean_invite_message(message)

        now = self.clock.now()
        with transaction.atomic():
            self.inbox.derive_invite(note)
            invite = ResponseInvite.objects.create(
                quiet_note=note,
                sender=responder,
                recipient_id=note.sender_id,
                message=message,
                created_at=now,
                expires_at=now + self.invite_ttl(),
            )
            self._announce(invite)

        logger.info("Invite %s created from note %s", invite.pk, note.pk)
        return invite

    def create_rekindle_invite(self, chat, actor, message, now):
        """
        Start a fresh invite cycle for the pair behind an older chat.

        Called by the completion gateway inside its transaction.
        """
        invite = ResponseInvite.objects.create(
            rekindled_from=chat,
            sender=actor,
            recipient_id=chat.get_partner_id(actor),
            message=clean_invite_message(message),
            created_at=now,
            expires_at=now + self.invite_ttl(),
        )
        self._announce(invite)
        return invite

    # =========================================================================
    # RESPOND
    # =========================================================================

    @store_retry
    def accept(self, invite_id, accepter):
        """
        Accept an invite and open its limited chat in one transaction.

        Any failure, including the chat refusing to open, leaves the
        invite pending and no chat behind.
        """
        now = self.clock.now()
        with transaction.atomic():
            invite = self._locked_for_recipient(invite_id, accepter)
            self._ensure_pending(invite, now)

            claimed = (
                ResponseInvite.objects
                .filter(pk=invite.pk, status=InviteStatus.PENDING)
                .update(status=InviteStatus.ACCEPTED, responded_at=now)
            )
            if not claimed:
                raise exceptions.NotPending()
            invite.status = InviteStatus.ACCEPTED
            invite.responded_at = now

            chat = self.chats.open_chat(invite, now)

        logger.info("Invite %s accepted, chat %s opened", invite.pk, chat.pk)
        return chat

    @store_retry
    def decline(self, invite_id, decliner):
        now = self.clock.now()
        with transaction.atomic():
            invite = self._locked_for_recipient(invite_id, decliner)
            self._ensure_pending(invite, now)
            ResponseInvite.objects.filter(pk=invite.pk, status=InviteStatus.PENDING).update(
                status=InviteStatus.DECLINED, responded_at=now,
            )
            invite.status = InviteStatus.DECLINED
            invite.responded_at = now
            events.emit(
                events.invite_declined, ResponseInvite,
                invite_id=invite.pk, sender_id=invite.sender_id, recipient_id=invite.recipient_id,
            )

        logger.info("Invite %s declined", invite.pk)
        return invite

    # =========================================================================
    # EXPIRY + QUERIES
    # =========================================================================

    def expire_stale(self, now=None):
        count = expire_stale_invites(now or self.clock.now())
        if count:
            logger.info("Expired %d stale invites", count)
        return count

    def get(self, invite_id):
        try:
            invite = ResponseInvite.objects.get(pk=invite_id)
        except ResponseInvite.DoesNotExist:
            raise exceptions.NotFound('Invite not found.')
        return self._refresh(invite, self.clock.now())

    def for_user(self, user):
        """Invites the user sent or received, newest first, expiry applied."""
        now = self.clock.now()
        ResponseInvite.objects.filter(
            Q(sender=user) | Q(recipient=user),
            status=InviteStatus.PENDING,
            expires_at__lt=now,
        ).update(status=InviteStatus.EXPIRED)
        return ResponseInvite.objects.filter(Q(sender=user) | Q(recipient=user))

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _locked_for_recipient(self, invite_id, user):
        try:
            invite = ResponseInvite.objects.select_for_update().get(pk=invite_id)
        except ResponseInvite.DoesNotExist:
            raise exceptions.NotFound('Invite not found.')
        if invite.recipient_id != user.pk:
            raise exceptions.NotRecipient('Only the invited person can answer this invite.')
        return invite

    @staticmethod
    def _ensure_pending(invite, now):
        if invite.status == InviteStatus.EXPIRED:
            raise exceptions.Expired(expires_at=invite.expires_at)
        if invite.status != InviteStatus.PENDING:
            raise exceptions.NotPending()
        if invite.is_past_expiry(now):
            raise exceptions.Expired(expires_at=invite.expires_at)

    @staticmethod
    def _refresh(invite, now):
        if invite.is_pending and invite.is_past_expiry(now):
            ResponseInvite.objects.filter(pk=invite.pk, status=InviteStatus.PENDING).update(
                status=InviteStatus.EXPIRED,
            )
            invite.refresh_from_db()
        return invite

    @staticmethod
    def _announce(invite):
        events.emit(
            events.invite_created, ResponseInvite,
            invite_id=invite.pk, sender_id=invite.sender_id, recipient_id=invite.recipient_id,
            expires_at=invite.expires_at, rekindled_from_id=invite.rekindled_from_id,
        )
