"""
Echo - Views
============

JSON query and command surface over the connection lifecycle:

1. Quiet notes   - send, list, mark read
2. Invites       - respond to a note, accept, decline
3. Limited chats - list, read, send, mark read
4. Completion    - complete, archive, rekindle

Derived fields (phase, remaining quota) are computed on every read and
never cached, so they are always right across a UTC day boundary.
"""

import functools
import json
import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from . import exceptions
from .chats import LimitedChatEngine
from .clock import SystemClock
from .completion import CompletionGateway
from .conf import echo_setting
from .counters import DailyCounterStore
from .forms import LimitedMessageForm, QuietNoteForm, RekindleForm, ResponseInviteForm
from .invites import ResponseInviteManager
from .lifecycle import age_days, compute_phase, is_nudge_day
from .models import InviteStatus
from .notes import QuietNoteInbox

logger = logging.getLogger(__name__)

User = get_user_model()


def get_clock():
    return SystemClock()


def echo_api(view):
    """Translate lifecycle rejections into distinguishable JSON errors."""
    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except exceptions.EchoError as exc:
            logger.debug("%s rejected for user %s: %s", view.__name__, request.user.pk, exc.code)
            return JsonResponse(exc.as_dict(), status=exc.status)
    return wrapper


def _payload(request):
    """Form-encoded or JSON request bodies."""
    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except json.JSONDecodeError:
            raise exceptions.ValidationError('Request body is not valid JSON.')
        if not isinstance(data, dict):
            raise exceptions.ValidationError('Request body must be a JSON object.')
        return data
    return request.POST


def _bound(form_class, request):
    form = form_class(_payload(request))
    if not form.is_valid():
        raise exceptions.ValidationError('Please fix the highlighted fields.', errors=form.errors.get_json_data())
    return form.cleaned_data


def _iso(value):
    return value.isoformat() if value else None


# =============================================================================
# SERIALIZATION
# =============================================================================

def note_payload(note, viewer):
    data = {
        'id': note.pk,
        'text': note.text,
        'is_read': note.is_read,
        'invite_sent': note.invite_sent,
        'created_at': _iso(note.created_at),
    }
    # Echoes are anonymous to their recipient
    if note.sender_id == viewer.pk:
        data['recipient_id'] = note.recipient_id
        data['direction'] = 'sent'
    else:
        data['direction'] = 'received'
    return data


def invite_payload(invite, viewer):
    data = {
        'id': invite.pk,
        'quiet_note_id': invite.quiet_note_id,
        'rekindled_from_id': invite.rekindled_from_id,
        'sender_id': invite.sender_id,
        'recipient_id': invite.recipient_id,
        'message': invite.message,
        'status': invite.status,
        'direction': 'sent' if invite.sender_id == viewer.pk else 'received',
        'created_at': _iso(invite.created_at),
        'expires_at': _iso(invite.expires_at),
        'responded_at': _iso(invite.responded_at),
    }
    # The note's author stays anonymous to the responder until they accept
    if (invite.sender_id == viewer.pk and invite.quiet_note_id is not None
            and invite.status != InviteStatus.ACCEPTED):
        del data['recipient_id']
    return data


def chat_payload(chat, viewer, engine, now):
    return {
        'id': chat.pk,
        'response_invite_id': chat.response_invite_id,
        'partner_id': chat.get_partner_id(viewer),
        'status': chat.status,
        'phase': compute_phase(chat, now),
        'age_days': age_days(chat, now),
        'show_nudge': is_nudge_day(chat, now),
        'created_at': _iso(chat.created_at),
        'expires_at': _iso(chat.expires_at),
        'daily_message_limit': chat.daily_message_limit,
        'character_limit': chat.character_limit,
        'message_pace_hours': chat.message_pace_hours,
        'remaining_today': engine.remaining_today(chat, now),
        'next_message_at': _iso(engine.next_message_at(chat, viewer, now)),
        'can_complete_connection': chat.can_complete_connection,
        'connection_completion_available_at': _iso(chat.connection_completion_available_at),
        'completed_at': _iso(chat.completed_at),
        'archived_at': _iso(chat.archived_at),
    }


def message_payload(message):
    return {
        'id': message.pk,
        'sender_id': message.sender_id,
        'text': message.text,
        'character_count': message.character_count,
        'is_read': message.is_read,
        'created_at': _iso(message.created_at),
    }


# =============================================================================
# QUIET NOTES
# =============================================================================

@login_required
@require_http_methods(['GET'])
def note_list(request):
    inbox = QuietNoteInbox(get_clock())
    received = [note_payload(n, request.user) for n in inbox.received(request.user)]
    sent = [note_payload(n, request.user) for n in inbox.sent(request.user)]
    return JsonResponse({
        'received': received,
        'sent': sent,
        'unread_count': inbox.unread_count(request.user),
    })


@login_required
@require_http_methods(['POST'])
@echo_api
def note_send(request):
    data = _bound(QuietNoteForm, request)
    recipient = User.objects.filter(pk=data['recipient_id']).first()
    if recipient is None:
        raise exceptions.NotFound('That person could not be found.')

    note = QuietNoteInbox(get_clock()).send(request.user, recipient, data['text'])
    return JsonResponse({'success': True, 'note': note_payload(note, request.user)}, status=201)


@login_required
@require_http_methods(['POST'])
@echo_api
def note_mark_read(request, note_id):
    note = QuietNoteInbox(get_clock()).mark_read(note_id, request.user)
    return JsonResponse({'success': True, 'note': note_payload(note, request.user)})


# =============================================================================
# RESPONSE INVITES
# =============================================================================

@login_required
@require_http_methods(['GET'])
def invite_list(request):
    invites = ResponseInviteManager(get_clock()).for_user(request.user)
    return JsonResponse({'invites': [invite_payload(i, request.user) for i in invites]})


@login_required
@require_http_methods(['POST'])
@echo_api
def invite_create(request, note_id):
    data = _bound(ResponseInviteForm, request)
    invite = ResponseInviteManager(get_clock()).create_invite(note_id, request.user, data['message'])
    return JsonResponse({'success': True, 'invite': invite_payload(invite, request.user)}, status=201)


@login_required
@require_http_methods(['POST'])
@echo_api
def invite_accept(request, invite_id):
    clock = get_clock()
    engine = LimitedChatEngine(clock)
    chat = ResponseInviteManager(clock, chats=engine).accept(invite_id, request.user)
    return JsonResponse(
        {'success': True, 'chat': chat_payload(chat, request.user, engine, clock.now())},
        status=201,
    )


@login_required
@require_http_methods(['POST'])
@echo_api
def invite_decline(request, invite_id):
    invite = ResponseInviteManager(get_clock()).decline(invite_id, request.user)
    return JsonResponse({'success': True, 'invite': invite_payload(invite, request.user)})


# =============================================================================
# LIMITED CHATS
# =============================================================================

@login_required
@require_http_methods(['GET'])
def chat_list(request):
    clock = get_clock()
    engine = LimitedChatEngine(clock)
    now = clock.now()
    chats = [chat_payload(c, request.user, engine, now) for c in engine.chats_for(request.user)]
    return JsonResponse({'chats': chats})


@login_required
@require_http_methods(['GET'])
@echo_api
def chat_detail(request, chat_id):
    clock = get_clock()
    engine = LimitedChatEngine(clock)
    chat = engine.get_for_participant(chat_id, request.user)
    messages = [message_payload(m) for m in engine.messages(chat.pk, request.user)]
    return JsonResponse({
        'chat': chat_payload(chat, request.user, engine, clock.now()),
        'messages': messages,
    })


@login_required
@require_http_methods(['POST'])
@echo_api
def chat_send(request, chat_id):
    data = _bound(LimitedMessageForm, request)
    clock = get_clock()
    engine = LimitedChatEngine(clock)
    message = engine.send_message(chat_id, request.user, data['text'])
    chat = engine.get(chat_id)
    return JsonResponse({
        'success': True,
        'message': message_payload(message),
        'chat': chat_payload(chat, request.user, engine, clock.now()),
    }, status=201)


@login_required
@require_http_methods(['POST'])
@echo_api
def chat_mark_read(request, chat_id):
    updated = LimitedChatEngine(get_clock()).mark_read(chat_id, request.user)
    return JsonResponse({'success': True, 'marked_read': updated})


# =============================================================================
# COMPLETION
# =============================================================================

@login_required
@require_http_methods(['POST'])
@echo_api
def chat_complete(request, chat_id):
    clock = get_clock()
    chat = CompletionGateway(clock).complete(chat_id, request.user)
    return JsonResponse({
        'success': True,
        'chat': chat_payload(chat, request.user, LimitedChatEngine(clock), clock.now()),
    })


@login_required
@require_http_methods(['POST'])
@echo_api
def chat_archive(request, chat_id):
    clock = get_clock()
    chat = CompletionGateway(clock).archive(chat_id, request.user)
    return JsonResponse({
        'success': True,
        'chat': chat_payload(chat, request.user, LimitedChatEngine(clock), clock.now()),
    })


@login_required
@require_http_methods(['POST'])
@echo_api
def chat_rekindle(request, chat_id):
    data = _bound(RekindleForm, request)
    invite = CompletionGateway(get_clock()).rekindle(chat_id, request.user, data.get('message'))
    return JsonResponse({'success': True, 'invite': invite_payload(invite, request.user)}, status=201)


# =============================================================================
# QUOTA
# =============================================================================

@login_required
@require_http_methods(['GET'])
def quota(request):
    """Free-tier messages left today (UTC), computed fresh."""
    counters = DailyCounterStore(get_clock())
    return JsonResponse({
        'date': counters.today().isoformat(),
        'daily_limit': echo_setting('FREE_TIER_DAILY_LIMIT'),
        'sent_today': counters.count(request.user, counters.today()),
        'remaining_daily_messages': counters.free_tier_remaining(request.user),
    })
