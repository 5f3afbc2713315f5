from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone

import pytest
from django.db import OperationalError, connection

from echo import exceptions
from echo.models import ChatStatus, DailyMessageCounter, LimitedChat, LimitedMessage
from tests.conftest import T0, hours


@pytest.fixture
def chat(make_chat, alice, bob):
    return make_chat(alice, bob)


def set_limits(chat, **fields):
    LimitedChat.objects.filter(pk=chat.pk).update(**fields)
    chat.refresh_from_db()
    return chat


@pytest.mark.django_db
def test_chat_uses_configured_limits(make_chat, alice, bob, settings) -> None:
    settings.ECHO = {
        "CHAT_DAILY_MESSAGE_LIMIT": 7,
        "CHAT_CHARACTER_LIMIT": 99,
        "CHAT_MESSAGE_PACE_HOURS": 2,
        "CHAT_TTL_DAYS": 10,
    }
    chat = make_chat(alice, bob)
    assert chat.daily_message_limit == 7
    assert chat.character_limit == 99
    assert chat.message_pace_hours == 2
    assert chat.expires_at == chat.created_at + hours(240)


@pytest.mark.django_db
def test_daily_cap_and_rollover(engine, chat, clock, alice) -> None:
    set_limits(chat, daily_message_limit=5)

    for expected in range(1, 6):
        engine.send_message(chat.pk, alice, f"message {expected}")
        chat.refresh_from_db()
        assert chat.message_count == expected

    with pytest.raises(exceptions.DailyLimitReached) as exc:
        engine.send_message(chat.pk, alice, "one too many")
    assert exc.value.details["retry_at"] == datetime(2025, 3, 11, tzinfo=timezone.utc)
    assert LimitedMessage.objects.filter(chat=chat).count() == 5

    clock.set(datetime(2025, 3, 11, 0, 0, 1, tzinfo=timezone.utc))
    engine.send_message(chat.pk, alice, "a new day")
    chat.refresh_from_db()
    assert chat.message_count == 1
    assert chat.last_message_date == date(2025, 3, 11)


@pytest.mark.django_db
def test_daily_cap_is_shared_by_both_participants(engine, chat, alice, bob) -> None:
    set_limits(chat, daily_message_limit=2)
    engine.send_message(chat.pk, alice, "hi")
    engine.send_message(chat.pk, bob, "hey")
    with pytest.raises(exceptions.DailyLimitReached):
        engine.send_message(chat.pk, bob, "again")


@pytest.mark.django_db
def test_pacing(engine, chat, clock, alice, bob) -> None:
    set_limits(chat, message_pace_hours=4, daily_message_limit=10)
    engine.send_message(chat.pk, alice, "first")

    clock.advance(hours=2)
    with pytest.raises(exceptions.TooSoon) as exc:
        engine.send_message(chat.pk, alice, "second")
    assert exc.value.details["retry_at"] == T0 + hours(4)
    # pacing is per sender
    engine.send_message(chat.pk, bob, "reply")

    clock.advance(hours=2)
    engine.send_message(chat.pk, alice, "second")
    assert LimitedMessage.objects.filter(chat=chat, sender=alice).count() == 2


@pytest.mark.django_db
def test_next_message_at_reports_pacing(engine, chat, clock, alice) -> None:
    set_limits(chat, message_pace_hours=4)
    assert engine.next_message_at(chat, alice) is None
    engine.send_message(chat.pk, alice, "first")
    clock.advance(hours=1)
    assert engine.next_message_at(chat, alice) == T0 + hours(4)
    clock.advance(hours=3)
    assert engine.next_message_at(chat, alice) is None


@pytest.mark.django_db
def test_message_length(engine, chat, alice) -> None:
    set_limits(chat, character_limit=10)
    engine.send_message(chat.pk, alice, "x" * 10)
    with pytest.raises(exceptions.MessageTooLong):
        engine.send_message(chat.pk, alice, "x" * 11)
    with pytest.raises(exceptions.ValidationError):
        engine.send_message(chat.pk, alice, "   ")


@pytest.mark.django_db
def test_outsider_cannot_send(engine, chat, carol) -> None:
    with pytest.raises(exceptions.NotParticipant):
        engine.send_message(chat.pk, carol, "let me in")


@pytest.mark.django_db
def test_unknown_chat(engine, alice) -> None:
    with pytest.raises(exceptions.NotFound):
        engine.send_message(424242, alice, "hello?")


@pytest.mark.django_db
def test_send_at_expiry_instant_is_rejected(engine, chat, clock, alice) -> None:
    clock.set(chat.expires_at - hours(1))
    engine.send_message(chat.pk, alice, "just in time")

    clock.set(chat.expires_at)
    with pytest.raises(exceptions.ChatExpired):
        engine.send_message(chat.pk, alice, "too late")


@pytest.mark.django_db
def test_terminal_chat_rejects_sends(engine, chat, alice) -> None:
    set_limits(chat, status=ChatStatus.ARCHIVED)
    with pytest.raises(exceptions.ChatExpired):
        engine.send_message(chat.pk, alice, "hello")


@pytest.mark.django_db
def test_nudge_day_does_not_block_sending(engine, chat, clock, alice) -> None:
    clock.set(chat.created_at + hours(72))
    engine.send_message(chat.pk, alice, "still here")


@pytest.mark.django_db
def test_chat_sends_are_recorded_in_daily_counter(engine, chat, alice, settings) -> None:
    set_limits(chat, daily_message_limit=10)
    settings.ECHO = {"FREE_TIER_DAILY_LIMIT": 2}
    for i in range(3):
        engine.send_message(chat.pk, alice, f"m{i}")
    assert DailyMessageCounter.objects.get(user=alice).count == 3


@pytest.mark.django_db
def test_remaining_today_resets_on_read_across_midnight(engine, chat, clock, alice) -> None:
    set_limits(chat, daily_message_limit=3)
    engine.send_message(chat.pk, alice, "hi")
    chat.refresh_from_db()
    assert engine.remaining_today(chat) == 2

    clock.set(datetime(2025, 3, 11, 0, 0, tzinfo=timezone.utc))
    assert engine.remaining_today(chat) == 3


@pytest.mark.django_db
def test_messages_are_ordered_and_mark_read(engine, chat, clock, alice, bob, carol) -> None:
    set_limits(chat, daily_message_limit=10)
    engine.send_message(chat.pk, alice, "one")
    clock.advance(minutes=1)
    engine.send_message(chat.pk, bob, "two")
    clock.advance(minutes=1)
    engine.send_message(chat.pk, alice, "three")

    assert [m.text for m in engine.messages(chat.pk, bob)] == ["one", "two", "three"]
    assert engine.mark_read(chat.pk, bob) == 2
    assert engine.mark_read(chat.pk, bob) == 0
    with pytest.raises(exceptions.NotParticipant):
        engine.messages(chat.pk, carol)


@pytest.mark.django_db
def test_chats_for_lists_participants_only(engine, chat, alice, bob, carol) -> None:
    assert [c.pk for c in engine.chats_for(alice)] == [chat.pk]
    assert [c.pk for c in engine.chats_for(bob)] == [chat.pk]
    assert engine.chats_for(carol) == []


@pytest.mark.django_db(transaction=True)
def test_concurrent_sends_never_overshoot_cap(engine, make_chat, alice, bob) -> None:
    chat = make_chat(alice, bob)
    set_limits(chat, daily_message_limit=4)
    senders = [alice, bob] * 5

    def attempt(sender):
        try:
            engine.send_message(chat.pk, sender, "racing")
            return "ok"
        except exceptions.DailyLimitReached:
            return "limit"
        finally:
            connection.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, senders))

    assert outcomes.count("ok") == 4
    assert outcomes.count("limit") == 6
    chat.refresh_from_db()
    assert chat.message_count == 4
    assert LimitedMessage.objects.filter(chat=chat).count() == 4


@pytest.mark.django_db
def test_remaining_today_is_zero_once_chat_closes(engine, chat, clock) -> None:
    assert engine.remaining_today(chat) == 3
    clock.set(chat.expires_at)
    assert engine.remaining_today(chat) == 0
    set_limits(chat, status=ChatStatus.COMPLETED)
    clock.set(chat.created_at + hours(200))
    assert engine.remaining_today(chat) == 0


@pytest.mark.django_db
def test_send_to_stale_chat_expires_it_once(engine, chat, clock, alice, bob, caplog, monkeypatch) -> None:
    monkeypatch.setattr(logging.getLogger("echo"), "propagate", True)
    clock.set(chat.expires_at + hours(1))

    with caplog.at_level(logging.INFO, logger="echo.lifecycle"):
        for sender in (alice, bob, alice):
            with pytest.raises(exceptions.ChatExpired):
                engine.send_message(chat.pk, sender, "anyone?")

    assert LimitedChat.objects.get(pk=chat.pk).status == ChatStatus.EXPIRED
    expired_logs = [r for r in caplog.records if r.getMessage() == f"Chat {chat.pk} expired"]
    assert len(expired_logs) == 1


@pytest.mark.django_db
def test_send_is_not_replayed_on_store_error(engine, chat, alice, monkeypatch) -> None:
    calls = []

    def flaky_create(**kwargs):
        calls.append(kwargs)
        raise OperationalError("connection lost")

    monkeypatch.setattr(LimitedMessage.objects, "create", flaky_create)
    with pytest.raises(OperationalError):
        engine.send_message(chat.pk, alice, "hello")
    assert len(calls) == 1
