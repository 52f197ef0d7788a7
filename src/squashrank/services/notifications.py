# src/squashrank/services/notifications.py

"""Delivery of match notifications to players through Telegram."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from squashrank import config
from squashrank.db import models
from squashrank.services.match_service import MatchConfirmation, MatchRejection

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(
        self, chat_id: int, text: str, reply_markup: dict | None = None
    ) -> None: ...


class LoggingNotifier:
    """Fallback used when no bot token is configured."""

    async def send(
        self, chat_id: int, text: str, reply_markup: dict | None = None
    ) -> None:
        logger.info("Notification (not sent): %s", text, extra={"chat_id": chat_id})


class TelegramNotifier:
    """Sends messages with the Bot API ``sendMessage`` method.

    Delivery problems are logged and swallowed: the state change the message
    describes has already been committed.
    """

    def __init__(
        self,
        bot_token: str,
        api_base: str = config.TELEGRAM_API_BASE,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = f"{api_base}/bot{bot_token}/sendMessage"
        self._timeout = timeout
        self._transport = transport

    async def send(
        self, chat_id: int, text: str, reply_markup: dict | None = None
    ) -> None:
        payload: dict = {"chat_id": chat_id, "text": text}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self._url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(
                "Failed to send Telegram message",
                extra={"chat_id": chat_id, "error": str(e)},
            )


def get_notifier() -> Notifier:
    """FastAPI dependency returning the configured notifier."""
    if config.BOT_TOKEN:
        return TelegramNotifier(config.BOT_TOKEN)
    return LoggingNotifier()


def _web_app_keyboard() -> dict | None:
    if not config.WEB_APP_URL:
        return None
    return {
        "inline_keyboard": [
            [{"text": "Open SquashRank", "web_app": {"url": config.WEB_APP_URL}}]
        ]
    }


# ===============================================
# == Messages
# ===============================================


async def notify_match_reported(notifier: Notifier, match: models.Match) -> None:
    """Ask the opponent to confirm a freshly reported score."""
    text = (
        f"{match.reporter.display_name} reported a game "
        f"{match.reporter_score}:{match.opponent_score} against you. "
        f"Please confirm or reject it (match #{match.id})."
    )
    await notifier.send(match.opponent.telegram_id, text, _web_app_keyboard())


async def notify_match_confirmed(
    notifier: Notifier, confirmation: MatchConfirmation
) -> None:
    """Tell both players their new ratings."""
    for change in (confirmation.reporter, confirmation.opponent):
        text = (
            f"Match #{confirmation.match.id} confirmed. "
            f"New rating: {change.after.rating:.2f} "
            f"({change.rating_delta:+.2f}, RD {change.after.rd:.1f})"
        )
        await notifier.send(change.player.telegram_id, text)


async def notify_match_rejected(notifier: Notifier, rejection: MatchRejection) -> None:
    """Tell the reporter their score was rejected."""
    match = rejection.match
    text = (
        f"{rejection.opponent.display_name} rejected your game "
        f"{match.reporter_score}:{match.opponent_score} (match #{match.id})."
    )
    await notifier.send(rejection.reporter.telegram_id, text)
