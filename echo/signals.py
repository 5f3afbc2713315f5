"""
Echo - Signal receivers

Log every domain event. Delivery to users happens in the external
notification system, which subscribes to the same signals.
"""

import logging

from django.dispatch import receiver

from . import events

logger = logging.getLogger('echo.events')


@receiver(events.quiet_note_sent)
def log_quiet_note_sent(sender, note_id, sender_id, recipient_id, **kwargs):
    logger.info("QuietNoteSent note=%s from=%s to=%s", note_id, sender_id, recipient_id)


@receiver(events.invite_created)
def log_invite_created(sender, invite_id, sender_id, recipient_id, expires_at, **kwargs):
    rekindled = kwargs.get('rekindled_from_id')
    if rekindled:
        logger.info(
            "InviteCreated invite=%s from=%s to=%s expires=%s rekindling chat=%s",
            invite_id, sender_id, recipient_id, expires_at.isoformat(), rekindled,
        )
    else:
        logger.info(
            "InviteCreated invite=%s from=%s to=%s expires=%s",
            invite_id, sender_id, recipient_id, expires_at.isoformat(),
        )


@receiver(events.invite_declined)
def log_invite_declined(sender, invite_id, **kwargs):
    logger.info("InviteDeclined invite=%s", invite_id)


@receiver(events.chat_created)
def log_chat_created(sender, chat_id, invite_id, user1_id, user2_id, **kwargs):
    logger.info("ChatCreated chat=%s invite=%s users=%s,%s", chat_id, invite_id, user1_id, user2_id)


@receiver(events.connection_completed)
def log_connection_completed(sender, chat_id, user1_id, user2_id, completed_at, **kwargs):
    logger.info(
        "ConnectionCompleted chat=%s users=%s,%s at=%s",
        chat_id, user1_id, user2_id, completed_at.isoformat(),
    )


@receiver(events.chat_archived)
def log_chat_archived(sender, chat_id, archived_by_id, **kwargs):
    logger.info("ChatArchived chat=%s by=%s", chat_id, archived_by_id)
