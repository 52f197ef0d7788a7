# tests/test_notifications.py

"""Tests for Telegram notifications."""

import json

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from squashrank import config
from squashrank.services import match_service, notifications
from squashrank.services.notifications import (
    LoggingNotifier,
    TelegramNotifier,
    get_notifier,
)


@pytest.mark.asyncio
async def test_telegram_notifier_posts_send_message():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True, "result": {}})

    notifier = TelegramNotifier(
        "42:ABC", api_base="https://bot.test", transport=httpx.MockTransport(handler)
    )

    await notifier.send(1001, "hello", {"inline_keyboard": []})

    assert len(requests) == 1
    assert str(requests[0].url) == "https://bot.test/bot42:ABC/sendMessage"
    body = json.loads(requests[0].content)
    assert body == {
        "chat_id": 1001,
        "text": "hello",
        "reply_markup": {"inline_keyboard": []},
    }


@pytest.mark.asyncio
async def test_telegram_notifier_swallows_delivery_errors(caplog):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"ok": False, "description": "blocked"})

    notifier = TelegramNotifier("42:ABC", transport=httpx.MockTransport(handler))

    await notifier.send(1001, "hello")

    assert "Failed to send Telegram message" in caplog.text


def test_get_notifier_depends_on_bot_token(monkeypatch):
    assert isinstance(get_notifier(), TelegramNotifier)

    monkeypatch.setattr(config, "BOT_TOKEN", None)
    assert isinstance(get_notifier(), LoggingNotifier)


@pytest.mark.asyncio
async def test_match_messages(
    db_session: AsyncSession, make_player, notifier, monkeypatch
):
    monkeypatch.setattr(config, "WEB_APP_URL", None)
    p1 = await make_player(first_name="Jan", username="jan")
    p2 = await make_player(first_name="Eva")
    match = await match_service.create_pending_match(db_session, p1.id, p2.id, 3, 1)

    await notifications.notify_match_reported(notifier, match)
    confirmation = await match_service.confirm_match(db_session, match.id, p2.id)
    await notifications.notify_match_confirmed(notifier, confirmation)

    reported, to_reporter, to_opponent = notifier.sent
    assert reported[0] == p2.telegram_id
    assert "Jan @jan reported a game 3:1 against you" in reported[1]
    assert to_reporter[0] == p1.telegram_id
    assert to_reporter[1].startswith(f"Match #{match.id} confirmed. New rating: ")
    assert f"{confirmation.reporter.rating_delta:+.2f}" in to_reporter[1]
    assert to_opponent[0] == p2.telegram_id
    assert "(-" in to_opponent[1]


@pytest.mark.asyncio
async def test_rejection_message_goes_to_reporter(
    db_session: AsyncSession, make_player, notifier
):
    p1 = await make_player()
    p2 = await make_player(first_name="Eva", last_name="Kos")
    match = await match_service.create_pending_match(db_session, p1.id, p2.id, 0, 3)
    rejection = await match_service.reject_match(db_session, match.id, p2.id)

    await notifications.notify_match_rejected(notifier, rejection)

    assert notifier.sent == [
        (p1.telegram_id, f"Eva Kos rejected your game 0:3 (match #{match.id}).")
    ]
