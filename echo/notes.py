"""
Echo - Quiet Note Inbox

Entry point of the lifecycle: one-way anonymous notes, read tracking,
and the once-only "an invite came from this note" flag.
"""

import logging

from . import events
from . import exceptions
from .clock import SystemClock
from .conf import echo_setting
from .models import QuietNote
from .retry import store_retry

logger = logging.getLogger(__name__)


class QuietNoteInbox:

    def __init__(self, clock=None):
        self.clock = clock or SystemClock()

    def send(self, sender, recipient, text):
        """Deliver a quiet note. Fails ValidationError for empty/too long text."""
        text = (text or '').strip()
        max_length = echo_setting('QUIET_NOTE_MAX_LENGTH')
        if not text:
            raise exceptions.ValidationError('An echo needs a few words.', field='text')
        if len(text) > max_length:
            raise exceptions.ValidationError(
                f'Echoes are limited to {max_length} characters.',
                field='text', max_length=max_length,
            )
        if sender.pk == recipient.pk:
            raise exceptions.ValidationError("You can't send an echo to yourself.", field='recipient')

        note = QuietNote.objects.create(
            sender=sender,
            recipient=recipient,
            text=text,
            created_at=self.clock.now(),
        )
        events.emit(
            events.quiet_note_sent, QuietNote,
            note_id=note.pk, sender_id=sender.pk, recipient_id=recipient.pk,
            created_at=note.created_at,
        )
        logger.info("Quiet note %s sent from %s to %s", note.pk, sender.pk, recipient.pk)
        return note

    def get(self, note_id):
        try:
            return QuietNote.objects.get(pk=note_id)
        except QuietNote.DoesNotExist:
            raise exceptions.NotFound('Echo not found.')

    @store_retry
    def mark_read(self, note_id, reader):
        """Mark a note read. Only the recipient may; repeating is a no-op."""
        note = self.get(note_id)
        if note.recipient_id != reader.pk:
            raise exceptions.NotAuthorized('Only the recipient can open this echo.')
        if not note.is_read:
            QuietNote.objects.filter(pk=note.pk).update(is_read=True)
            note.is_read = True
        return note

    def derive_invite(self, note):
        """
        Claim the note's single invite slot.

        Guarded update so two concurrent responders can't both claim it.
        Must run inside the transaction that creates the invite.
        """
        claimed = QuietNote.objects.filter(pk=note.pk, invite_sent=False).update(invite_sent=True)
        if not claimed:
            raise exceptions.AlreadyInvited()
        note.invite_sent = True
        return note

    # =========================================================================
    # QUERIES
    # =========================================================================

    def received(self, user):
        return QuietNote.objects.filter(recipient=user)

    def sent(self, user):
        return QuietNote.objects.filter(sender=user)

    def unread_count(self, user):
        return QuietNote.objects.filter(recipient=user, is_read=False).count()
