"""
Echo - Settings access

Reads the ``ECHO`` dict from Django settings, falling back to the
defaults below for any key the project does not override.
"""

from django.conf import settings

DEFAULTS = {
    'QUIET_NOTE_MAX_LENGTH': 120,
    'INVITE_MESSAGE_MAX_LENGTH': 150,
    'INVITE_TTL_HOURS': 48,
    'CHAT_TTL_DAYS': 14,
    'CHAT_DAILY_MESSAGE_LIMIT': 3,
    'CHAT_CHARACTER_LIMIT': 280,
    'CHAT_MESSAGE_PACE_HOURS': 0,
    'SINGLE_THREAD_ENFORCED': True,
    'FREE_TIER_DAILY_LIMIT': 5,
    'STORE_RETRIES': 3,
    'SWEEP_INTERVAL_SECONDS': 300,
}


def echo_setting(name):
    """Return a single Echo setting, honouring override_settings in tests."""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown Echo setting: {name}")
    overrides = getattr(settings, 'ECHO', None) or {}
    return overrides.get(name, DEFAULTS[name])
