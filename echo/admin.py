"""
Echo - Admin Configuration

Read-mostly views of the lifecycle for support staff. Audit fields are
read-only; nothing here bypasses the lifecycle rules.
"""

from django.contrib import admin
from django.utils import timezone

from .lifecycle import compute_phase
from .models import DailyMessageCounter, LimitedChat, LimitedMessage, QuietNote, ResponseInvite


@admin.register(QuietNote)
class QuietNoteAdmin(admin.ModelAdmin):
    list_display = ['id', 'sender', 'recipient', 'text_short', 'is_read', 'invite_sent', 'created_at']
    list_filter = ['is_read', 'invite_sent', 'created_at']
    search_fields = ['sender__username', 'recipient__username', 'text']
    readonly_fields = ['sender', 'recipient', 'text', 'invite_sent', 'created_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'

    def text_short(self, obj):
        return obj.text[:60] + '...' if len(obj.text) > 60 else obj.text
    text_short.short_description = 'Echo'


@admin.register(ResponseInvite)
class ResponseInviteAdmin(admin.ModelAdmin):
    list_display = ['id', 'sender', 'recipient', 'status', 'is_rekindle', 'created_at', 'expires_at']
    list_filter = ['status', 'created_at']
    search_fields = ['sender__username', 'recipient__username', 'message']
    readonly_fields = ['quiet_note', 'rekindled_from', 'sender', 'recipient', 'created_at', 'expires_at', 'responded_at']
    ordering = ['-created_at']

    def is_rekindle(self, obj):
        return obj.rekindled_from_id is not None
    is_rekindle.boolean = True
    is_rekindle.short_description = 'Rekindle'


class LimitedMessageInline(admin.TabularInline):
    model = LimitedMessage
    extra = 0
    can_delete = False
    fields = ['sender', 'text', 'character_count', 'is_read', 'created_at']
    readonly_fields = fields


@admin.register(LimitedChat)
class LimitedChatAdmin(admin.ModelAdmin):
    list_display = [
        '__str__', 'phase', 'status', 'message_count', 'daily_message_limit',
        'last_message_date', 'can_complete_connection', 'created_at', 'expires_at',
    ]
    list_filter = ['status', 'can_complete_connection', 'single_thread_enforced', 'created_at']
    search_fields = ['user1__username', 'user2__username']
    readonly_fields = [
        'response_invite', 'user1', 'user2', 'created_at', 'expires_at',
        'message_count', 'last_message_date', 'can_complete_connection',
        'connection_completion_available_at', 'completed_at', 'archived_at',
    ]
    inlines = [LimitedMessageInline]
    ordering = ['-created_at']

    def phase(self, obj):
        return compute_phase(obj, timezone.now()).label
    phase.short_description = 'Phase'

    def has_delete_permission(self, request, obj=None):
        # Chats are soft-retired, never deleted
        return False


@admin.register(DailyMessageCounter)
class DailyMessageCounterAdmin(admin.ModelAdmin):
    list_display = ['user', 'date', 'count']
    list_filter = ['date']
    search_fields = ['user__username']
    readonly_fields = ['user', 'date', 'count']
    ordering = ['-date']
    date_hierarchy = 'date'
