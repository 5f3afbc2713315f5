"""
Echo - Domain events

Signals consumed by the notification and connection systems. They are
always dispatched through ``emit`` so receivers only ever hear about
writes that actually committed.

Payloads (keyword arguments, ``sender`` is the emitting model class):

- quiet_note_sent:       note_id, sender_id, recipient_id, created_at
- invite_created:        invite_id, sender_id, recipient_id, expires_at, rekindled_from_id
- invite_declined:       invite_id, sender_id, recipient_id
- chat_created:          chat_id, invite_id, user1_id, user2_id, created_at, expires_at
- connection_completed:  chat_id, user1_id, user2_id, completed_at
- chat_archived:         chat_id, user1_id, user2_id, archived_at, archived_by_id
"""

from django.db import transaction
from django.dispatch import Signal

quiet_note_sent = Signal()
invite_created = Signal()
invite_declined = Signal()
chat_created = Signal()
connection_completed = Signal()
chat_archived = Signal()


def emit(signal, sender, **payload):
    """Send ``signal`` once the surrounding transaction commits."""
    transaction.on_commit(lambda: signal.send(sender=sender, **payload))
