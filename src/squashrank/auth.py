# src/squashrank/auth.py

"""Authentication of Telegram Web App requests.

The mini app sends the raw ``initData`` string Telegram hands it. Its
``hash`` field is an HMAC-SHA256 over the other fields, keyed with
``HMAC-SHA256("WebAppData", bot_token)``.
"""

import hashlib
import hmac
import json
import time
from urllib.parse import parse_qsl

from fastapi import Header, Query
from pydantic import ValidationError as PydanticValidationError

from squashrank import config
from squashrank.exceptions import AuthenticationError, InvalidInitDataError
from squashrank.schemas.player import TelegramUser


def _secret_key(bot_token: str) -> bytes:
    return hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()


def compute_init_data_hash(fields: dict[str, str], bot_token: str) -> str:
    """Hex digest Telegram would put in ``hash`` for these fields."""
    data_check_string = "\n".join(
        f"{key}={value}" for key, value in sorted(fields.items()) if key != "hash"
    )
    return hmac.new(
        _secret_key(bot_token), data_check_string.encode(), hashlib.sha256
    ).hexdigest()


def verify_init_data(
    init_data: str,
    bot_token: str,
    max_age: int = 0,
    now: float | None = None,
) -> TelegramUser:
    """
    Checks the signature of Web App init data and returns the user in it.

    Args:
        init_data: The URL-encoded init data string.
        bot_token: Token of the bot that launched the Web App.
        max_age: Reject data whose ``auth_date`` is older than this many
            seconds. 0 disables the check.

    Raises:
        InvalidInitDataError: If the data is unsigned, forged, stale or has
            no usable user.
    """
    fields = dict(parse_qsl(init_data, keep_blank_values=True))
    received_hash = fields.get("hash")
    if not received_hash:
        raise InvalidInitDataError("missing hash")

    expected_hash = compute_init_data_hash(fields, bot_token)
    if not hmac.compare_digest(expected_hash, received_hash):
        raise InvalidInitDataError("signature mismatch")

    if max_age:
        try:
            auth_date = int(fields.get("auth_date", ""))
        except ValueError as e:
            raise InvalidInitDataError("missing auth_date") from e
        current = time.time() if now is None else now
        if current - auth_date > max_age:
            raise InvalidInitDataError("init data expired")

    raw_user = fields.get("user")
    if not raw_user:
        raise InvalidInitDataError("no user")
    try:
        return TelegramUser.model_validate(json.loads(raw_user))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        raise InvalidInitDataError("malformed user") from e


async def get_telegram_user(
    x_telegram_init_data: str | None = Header(default=None),
    init_data: str | None = Query(default=None, alias="initData"),
) -> TelegramUser:
    """FastAPI dependency resolving the calling Telegram user."""
    if not config.BOT_TOKEN:
        raise AuthenticationError("Bot token is not configured")
    raw = x_telegram_init_data or init_data
    if not raw:
        raise InvalidInitDataError("missing init data")
    return verify_init_data(raw, config.BOT_TOKEN, config.INIT_DATA_MAX_AGE)
