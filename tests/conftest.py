# tests/conftest.py

"""Pytest configuration and fixtures."""

import json
import os
import time
from typing import AsyncGenerator
from urllib.parse import urlencode

os.environ.setdefault("BOT_TOKEN", "123456:TEST-TOKEN")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from squashrank import config  # noqa: E402
from squashrank.auth import compute_init_data_hash  # noqa: E402
from squashrank.db.models import Base, Player  # noqa: E402
from squashrank.db.session import build_engine, get_db  # noqa: E402
from squashrank.main import app  # noqa: E402
from squashrank.services.notifications import get_notifier  # noqa: E402

TEST_BOT_TOKEN = "123456:TEST-TOKEN"


class RecordingNotifier:
    """Notifier double that keeps every message instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []

    async def send(
        self, chat_id: int, text: str, reply_markup: dict | None = None
    ) -> None:
        self.sent.append((chat_id, text))


def make_init_data(
    user: dict, bot_token: str = TEST_BOT_TOKEN, auth_date: int | None = None
) -> str:
    """Build init data signed the way Telegram signs it."""
    fields = {
        "auth_date": str(int(time.time()) if auth_date is None else auth_date),
        "query_id": "AAH-test",
        "user": json.dumps(user, separators=(",", ":")),
    }
    fields["hash"] = compute_init_data_hash(fields, bot_token)
    return urlencode(fields)


def auth_headers(telegram_id: int, **profile: str) -> dict[str, str]:
    user = {"id": telegram_id, "first_name": f"User{telegram_id}", **profile}
    return {"X-Telegram-Init-Data": make_init_data(user)}


@pytest.fixture(autouse=True)
def bot_token(monkeypatch: pytest.MonkeyPatch) -> str:
    """Pin the bot token regardless of the outer environment."""
    monkeypatch.setattr(config, "BOT_TOKEN", TEST_BOT_TOKEN)
    return TEST_BOT_TOKEN


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A fresh file-backed SQLite database per test.

    A file (rather than ``:memory:``) lets separate connections see the same
    data, which the concurrency tests rely on.
    """
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine, expire_on_commit=False, autocommit=False, autoflush=False
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def async_client(
    session_factory: async_sessionmaker[AsyncSession], notifier: RecordingNotifier
) -> AsyncGenerator[AsyncClient, None]:
    """Fixture to provide an async test client for the API."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_player(db_session: AsyncSession):
    """Factory creating a persisted player with optional rating state."""
    counter = iter(range(1000, 100000))

    async def _make(**kw) -> Player:
        telegram_id = kw.pop("telegram_id", next(counter))
        player = Player(telegram_id=telegram_id, **kw)
        db_session.add(player)
        await db_session.commit()
        return player

    return _make
