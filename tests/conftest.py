from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from echo.chats import LimitedChatEngine
from echo.clock import FixedClock
from echo.completion import CompletionGateway
from echo.counters import DailyCounterStore
from echo.invites import ResponseInviteManager
from echo.lifecycle import LifecycleScheduler
from echo.notes import QuietNoteInbox

T0 = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _plain_http(settings):
    settings.SECURE_SSL_REDIRECT = False


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def alice(django_user_model):
    return django_user_model.objects.create_user(username="alice", password="pw")


@pytest.fixture
def bob(django_user_model):
    return django_user_model.objects.create_user(username="bob", password="pw")


@pytest.fixture
def carol(django_user_model):
    return django_user_model.objects.create_user(username="carol", password="pw")


@pytest.fixture
def counters(clock):
    return DailyCounterStore(clock)


@pytest.fixture
def inbox(clock):
    return QuietNoteInbox(clock)


@pytest.fixture
def engine(clock, counters):
    return LimitedChatEngine(clock, counters)


@pytest.fixture
def invites(clock, inbox, engine):
    return ResponseInviteManager(clock, inbox=inbox, chats=engine)


@pytest.fixture
def gateway(clock, invites):
    return CompletionGateway(clock, invites=invites)


@pytest.fixture
def scheduler(clock):
    return LifecycleScheduler(clock)


@pytest.fixture
def make_chat(inbox, invites):
    """Walk a note through invite and accept; returns the new chat.

    ``author`` writes the note and later accepts; ``responder`` invites.
    """

    def _make(author, responder, text="Your echo felt like dusk."):
        note = inbox.send(author, responder, text)
        invite = invites.create_invite(note.pk, responder, "I'd love to continue this resonance.")
        return invites.accept(invite.pk, author)

    return _make


def hours(n: float) -> timedelta:
    return timedelta(hours=n)
