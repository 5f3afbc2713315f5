"""
Echo - Error taxonomy

Every rejection carries a stable ``code`` so clients can tell
"come back after 3 days" apart from "daily limit reached".
"""


class EchoError(Exception):
    """Base class for all lifecycle rejections."""

    code = 'echo_error'
    status = 400
    default_message = 'The request could not be completed.'

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def as_dict(self):
        payload = {'success': False, 'error': self.code, 'detail': self.message}
        for key, value in self.details.items():
            payload[key] = value.isoformat() if hasattr(value, 'isoformat') else value
        return payload


# =============================================================================
# MALFORMED INPUT
# =============================================================================

class ValidationError(EchoError):
    code = 'validation_error'
    status = 400
    default_message = 'The submitted data is not valid.'


class MessageTooLong(ValidationError):
    code = 'message_too_long'
    default_message = 'That message is longer than this chat allows.'


# =============================================================================
# IDENTITY MISMATCH
# =============================================================================

class NotAuthorized(EchoError):
    code = 'not_authorized'
    status = 403
    default_message = "You don't have access to this."


class NotParticipant(NotAuthorized):
    code = 'not_participant'
    default_message = 'You are not part of this chat.'


class NotRecipient(NotAuthorized):
    code = 'not_recipient'
    default_message = 'Only the recipient can do this.'


class NotFound(EchoError):
    code = 'not_found'
    status = 404
    default_message = 'Not found.'


# =============================================================================
# STATE CONFLICTS
# =============================================================================

class StateConflict(EchoError):
    code = 'state_conflict'
    status = 409
    default_message = 'That is not possible right now.'


class AlreadyInvited(StateConflict):
    code = 'already_invited'
    default_message = 'An invite has already been sent for this echo.'


class NotPending(StateConflict):
    code = 'not_pending'
    default_message = 'This invite has already been answered.'


class Expired(StateConflict):
    code = 'expired'
    default_message = 'This invite has expired.'


class NotEligible(StateConflict):
    code = 'not_eligible'
    default_message = 'This chat is not ready for that yet.'


class ChatExpired(StateConflict):
    code = 'chat_expired'
    default_message = 'This chat is no longer open.'


class DailyLimitReached(StateConflict):
    code = 'daily_limit_reached'
    default_message = "You've reached today's message limit for this chat."


class TooSoon(StateConflict):
    code = 'too_soon'
    default_message = 'Take a breath - your next message can be sent a little later.'


class ActiveChatExists(StateConflict):
    code = 'active_chat_exists'
    default_message = 'You already share an open chat with this person.'
