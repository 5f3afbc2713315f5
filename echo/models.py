"""
Echo - Data Models
==================

The staged relationship between two users:

    QuietNote -> ResponseInvite -> LimitedChat (+ LimitedMessage)

Plus the per-user DailyMessageCounter used for day-keyed quotas.

Nothing here is ever hard-deleted: chats are soft-retired through their
``status`` and messages are append-only, so archive and rekindle keep the
full history.
"""

from django.conf import settings
from django.db import models
from django.db.models import Q


class QuietNote(models.Model):
    """
    A one-way, anonymous echo from one user to another.

    Only ``is_read`` and ``invite_sent`` change after creation.
    ``invite_sent`` guarantees a note yields at most one response invite.
    """
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='quiet_notes_sent'
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='quiet_notes_received'
    )
    text = models.TextField(
        help_text="The echo itself (length bound comes from ECHO settings)"
    )
    is_read = models.BooleanField(default=False)
    invite_sent = models.BooleanField(
        default=False,
        help_text="Set once a response invite has been derived from this note"
    )
    created_at = models.DateTimeField(db_index=True)

    class Meta:
        ordering = ['-created_at', '-id']
        verbose_name = 'Quiet Note'
        verbose_name_plural = 'Quiet Notes'
        indexes = [
            models.Index(fields=['recipient', 'created_at'], name='note_recipient_created_idx'),
        ]

    def __str__(self):
        return f"Echo #{self.pk} to {self.recipient_id}"


class InviteStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    ACCEPTED = 'accepted', 'Accepted'
    DECLINED = 'declined', 'Declined'
    EXPIRED = 'expired', 'Expired'


class ResponseInvite(models.Model):
    """
    A time-bounded offer to upgrade a quiet note into a limited chat.

    The responder (the note's recipient) is the invite's ``sender``; the
    note's author is the invite's ``recipient`` and the one who accepts.

    Rekindle invites have no note; they point at the chat they rekindle.
    """
    quiet_note = models.OneToOneField(
        QuietNote,
        on_delete=models.PROTECT,
        related_name='response_invite',
        null=True,
        blank=True
    )
    rekindled_from = models.OneToOneField(
        'LimitedChat',
        on_delete=models.PROTECT,
        related_name='rekindle_invite',
        null=True,
        blank=True,
        help_text="Set when this invite restarts the cycle for an older chat"
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='response_invites_sent'
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='response_invites_received'
    )
    message = models.CharField(max_length=150)
    status = models.CharField(
        max_length=10,
        choices=InviteStatus.choices,
        default=InviteStatus.PENDING,
        db_index=True
    )
    created_at = models.DateTimeField()
    expires_at = models.DateTimeField(db_index=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at', '-id']
        verbose_name = 'Response Invite'
        verbose_name_plural = 'Response Invites'
        constraints = [
            models.CheckConstraint(
                condition=Q(quiet_note__isnull=False) | Q(rekindled_from__isnull=False),
                name='invite_has_origin',
            ),
        ]

    def __str__(self):
        return f"Invite #{self.pk} ({self.get_status_display()})"

    @property
    def is_pending(self):
        return self.status == InviteStatus.PENDING

    def is_past_expiry(self, now):
        """Invites stay acceptable up to and including expires_at."""
        return now > self.expires_at


class ChatStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    EXPIRED = 'expired', 'Expired'
    COMPLETED = 'completed', 'Completed'
    ARCHIVED = 'archived', 'Archived'


TERMINAL_CHAT_STATUSES = (ChatStatus.EXPIRED, ChatStatus.COMPLETED, ChatStatus.ARCHIVED)


class LimitedChat(models.Model):
    """
    The bounded conversation opened when an invite is accepted.

    ``message_count``/``last_message_date`` is the chat's own per-day cap,
    independent of the sender's subscription tier. ``pair_low``/``pair_high``
    hold the unordered pair so the database can refuse a second active
    chat between the same two people.
    """
    response_invite = models.OneToOneField(
        ResponseInvite,
        on_delete=models.PROTECT,
        related_name='limited_chat'
    )
    user1 = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='limited_chats_as_user1'
    )
    user2 = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='limited_chats_as_user2'
    )
    pair_low = models.BigIntegerField(editable=False)
    pair_high = models.BigIntegerField(editable=False)

    status = models.CharField(
        max_length=10,
        choices=ChatStatus.choices,
        default=ChatStatus.ACTIVE,
        db_index=True
    )
    created_at = models.DateTimeField(db_index=True)
    expires_at = models.DateTimeField(db_index=True)

    # Rate limits, frozen at creation
    daily_message_limit = models.PositiveIntegerField()
    character_limit = models.PositiveIntegerField()
    message_pace_hours = models.PositiveIntegerField(default=0)

    # Per-chat daily counter
    message_count = models.PositiveIntegerField(default=0)
    last_message_date = models.DateField(null=True, blank=True)

    # Completion eligibility (monotonic: once true, stays true)
    can_complete_connection = models.BooleanField(default=False)
    connection_completion_available_at = models.DateTimeField()

    single_thread_enforced = models.BooleanField(default=True)

    completed_at = models.DateTimeField(null=True, blank=True)
    archived_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at', '-id']
        verbose_name = 'Limited Chat'
        verbose_name_plural = 'Limited Chats'
        constraints = [
            models.UniqueConstraint(
                fields=['pair_low', 'pair_high'],
                condition=Q(status='active', single_thread_enforced=True),
                name='one_active_chat_per_pair',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'expires_at'], name='chat_status_expires_idx'),
        ]

    def __str__(self):
        return f"Chat #{self.pk} {self.user1_id} & {self.user2_id} ({self.get_status_display()})"

    def save(self, *args, **kwargs):
        low, high = sorted((self.user1_id, self.user2_id))
        self.pair_low = low
        self.pair_high = high
        super().save(*args, **kwargs)

    def includes_user(self, user):
        """Check if this chat includes the given user."""
        return user.pk in (self.user1_id, self.user2_id)

    def get_partner_id(self, user):
        """Given one participant, return the other's id."""
        if user.pk == self.user1_id:
            return self.user2_id
        if user.pk == self.user2_id:
            return self.user1_id
        return None

    @property
    def is_terminal(self):
        return self.status in TERMINAL_CHAT_STATUSES

    def is_open(self, now):
        """Sending is refused at the expiry instant itself."""
        return self.status == ChatStatus.ACTIVE and now < self.expires_at

    @classmethod
    def for_user(cls, user):
        """Return all chats (any status) that include this user."""
        return cls.objects.filter(Q(user1=user) | Q(user2=user))

    @classmethod
    def active_between(cls, user_a_id, user_b_id):
        low, high = sorted((user_a_id, user_b_id))
        return cls.objects.filter(pair_low=low, pair_high=high, status=ChatStatus.ACTIVE)


class LimitedMessage(models.Model):
    """An immutable message inside a limited chat. Only ``is_read`` changes."""
    chat = models.ForeignKey(
        LimitedChat,
        on_delete=models.PROTECT,
        related_name='messages'
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='limited_messages_sent'
    )
    text = models.TextField()
    character_count = models.PositiveIntegerField()
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField()

    class Meta:
        ordering = ['created_at', 'id']
        verbose_name = 'Limited Message'
        verbose_name_plural = 'Limited Messages'
        indexes = [
            models.Index(fields=['chat', 'sender', 'created_at'], name='msg_chat_sender_created_idx'),
        ]

    def __str__(self):
        return f"Message #{self.pk} in chat {self.chat_id}"

    def save(self, *args, **kwargs):
        self.character_count = len(self.text or '')
        super().save(*args, **kwargs)


class DailyMessageCounter(models.Model):
    """
    Messages a user sent on one UTC calendar day.

    Keyed by (user, date), so no reset job is needed: a new day simply
    starts a new row. Rows are created on first increment and never
    decremented.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='daily_message_counters'
    )
    date = models.DateField()
    count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['-date']
        verbose_name = 'Daily Message Counter'
        verbose_name_plural = 'Daily Message Counters'
        constraints = [
            models.UniqueConstraint(fields=['user', 'date'], name='unique_user_day_counter'),
        ]

    def __str__(self):
        return f"{self.user_id} on {self.date}: {self.count}"
