from __future__ import annotations

import pytest
from django.db import OperationalError

from echo import exceptions
from echo.models import QuietNote
from tests.conftest import T0


@pytest.mark.django_db
def test_send_creates_unread_note(inbox, alice, bob) -> None:
    note = inbox.send(alice, bob, "  Your echo felt like dusk.  ")

    assert note.text == "Your echo felt like dusk."
    assert note.is_read is False
    assert note.invite_sent is False
    assert note.created_at == T0
    assert list(inbox.received(bob)) == [note]
    assert list(inbox.sent(alice)) == [note]


@pytest.mark.django_db
@pytest.mark.parametrize("text", ["", "   ", None])
def test_send_rejects_empty_text(inbox, alice, bob, text) -> None:
    with pytest.raises(exceptions.ValidationError):
        inbox.send(alice, bob, text)
    assert QuietNote.objects.count() == 0


@pytest.mark.django_db
def test_send_enforces_length_bound(inbox, alice, bob, settings) -> None:
    settings.ECHO = {"QUIET_NOTE_MAX_LENGTH": 10}
    inbox.send(alice, bob, "x" * 10)
    with pytest.raises(exceptions.ValidationError) as exc:
        inbox.send(alice, bob, "x" * 11)
    assert exc.value.details["max_length"] == 10


@pytest.mark.django_db
def test_cannot_echo_yourself(inbox, alice) -> None:
    with pytest.raises(exceptions.ValidationError):
        inbox.send(alice, alice, "hello me")


@pytest.mark.django_db
def test_mark_read_is_recipient_only_and_idempotent(inbox, alice, bob, carol) -> None:
    note = inbox.send(alice, bob, "Something in your story resonated.")

    with pytest.raises(exceptions.NotAuthorized):
        inbox.mark_read(note.pk, alice)
    with pytest.raises(exceptions.NotAuthorized):
        inbox.mark_read(note.pk, carol)

    assert inbox.unread_count(bob) == 1
    inbox.mark_read(note.pk, bob)
    inbox.mark_read(note.pk, bob)
    note.refresh_from_db()
    assert note.is_read is True
    assert inbox.unread_count(bob) == 0


@pytest.mark.django_db
def test_mark_read_unknown_note(inbox, bob) -> None:
    with pytest.raises(exceptions.NotFound):
        inbox.mark_read(9999, bob)


@pytest.mark.django_db
def test_derive_invite_only_once(inbox, alice, bob) -> None:
    note = inbox.send(alice, bob, "Your energy speaks my language.")
    inbox.derive_invite(note)

    stale = QuietNote.objects.get(pk=note.pk)
    stale.invite_sent = False  # a copy read before the flag flipped
    with pytest.raises(exceptions.AlreadyInvited):
        inbox.derive_invite(stale)


@pytest.mark.django_db
def test_send_is_not_replayed_on_store_error(inbox, alice, bob, monkeypatch) -> None:
    calls = []

    def flaky_create(**kwargs):
        calls.append(kwargs)
        raise OperationalError("database is locked")

    monkeypatch.setattr(QuietNote.objects, "create", flaky_create)
    with pytest.raises(OperationalError):
        inbox.send(alice, bob, "hello")
    assert len(calls) == 1
