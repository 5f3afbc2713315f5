from __future__ import annotations

from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from echo.models import ChatStatus, InviteStatus, LimitedChat, ResponseInvite


def run_sweep(*args):
    out = StringIO()
    call_command("run_lifecycle_sweep", *args, stdout=out)
    return out.getvalue()


@pytest.fixture
def stale(make_chat, inbox, invites, alice, bob, carol):
    # Built on the fixed 2025 clock, so the real clock finds all of it overdue.
    chat = make_chat(alice, bob)
    invite = invites.create_invite(inbox.send(carol, alice, "hello").pk, alice, "hi")
    return chat, invite


@pytest.mark.django_db
def test_sweep_reports_and_applies(stale) -> None:
    chat, invite = stale

    output = run_sweep()

    assert "1 chats now eligible, 1 chats expired, 1 invites expired" in output
    chat.refresh_from_db()
    invite.refresh_from_db()
    assert chat.status == ChatStatus.EXPIRED
    assert chat.can_complete_connection is True
    assert invite.status == InviteStatus.EXPIRED


@pytest.mark.django_db
def test_second_sweep_changes_nothing(stale) -> None:
    run_sweep()
    assert "0 chats now eligible, 0 chats expired, 0 invites expired" in run_sweep()


@pytest.mark.django_db
def test_dry_run_writes_nothing(stale) -> None:
    output = run_sweep("--dry-run")

    assert "DRY RUN" in output
    assert "1 chats expired" in output
    assert LimitedChat.objects.get().status == ChatStatus.ACTIVE
    assert not ResponseInvite.objects.filter(status=InviteStatus.EXPIRED).exists()


@pytest.mark.django_db
def test_interval_must_be_positive() -> None:
    with pytest.raises(CommandError):
        run_sweep("--loop", "--interval=0")
