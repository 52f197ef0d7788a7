# tests/test_transaction_rollback.py

"""A failing rating update must leave the match pending and ratings intact."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from squashrank.db.models import MatchStatus, Player
from squashrank.exceptions import RatingCalculationError
from squashrank.rating import glicko2_engine
from squashrank.services import match_service

from conftest import auth_headers


def _failing_rate_match(*args, **kwargs):
    raise RatingCalculationError("Volatility iteration did not converge")


@pytest.fixture
def broken_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(glicko2_engine, "rate_match", _failing_rate_match)


@pytest.mark.asyncio
async def test_engine_failure_rolls_back_confirmation(
    db_session: AsyncSession, make_player, broken_engine
):
    # ARRANGE
    p1 = await make_player(rating=1550.0, rd=180.0)
    p2 = await make_player(rating=1490.0, rd=220.0)
    match = await match_service.create_pending_match(db_session, p1.id, p2.id, 3, 1)

    # ACT
    with pytest.raises(RatingCalculationError):
        await match_service.confirm_match(db_session, match.id, p2.id)

    # ASSERT
    reloaded = await match_service.get_match(db_session, match.id)
    assert reloaded.status == MatchStatus.PENDING.value
    assert reloaded.resolved_at is None
    reporter = await db_session.get(Player, p1.id, populate_existing=True)
    opponent = await db_session.get(Player, p2.id, populate_existing=True)
    assert (reporter.rating, reporter.rd, reporter.version) == (1550.0, 180.0, 1)
    assert (opponent.rating, opponent.rd, opponent.version) == (1490.0, 220.0, 1)


@pytest.mark.asyncio
async def test_match_can_be_confirmed_after_engine_recovers(
    db_session: AsyncSession, make_player, monkeypatch: pytest.MonkeyPatch
):
    p1 = await make_player()
    p2 = await make_player()
    match = await match_service.create_pending_match(db_session, p1.id, p2.id, 3, 1)
    real_rate_match = glicko2_engine.rate_match

    monkeypatch.setattr(glicko2_engine, "rate_match", _failing_rate_match)
    with pytest.raises(RatingCalculationError):
        await match_service.confirm_match(db_session, match.id, p2.id)

    monkeypatch.setattr(glicko2_engine, "rate_match", real_rate_match)
    confirmation = await match_service.confirm_match(db_session, match.id, p2.id)

    assert confirmation.match.status == MatchStatus.CONFIRMED.value
    assert confirmation.reporter.after.rating > 1500


@pytest.mark.asyncio
async def test_engine_failure_returns_500_over_http(
    async_client: AsyncClient, make_player, notifier, broken_engine
):
    # ARRANGE
    p1 = await make_player(telegram_id=501)
    await make_player(telegram_id=502)
    response = await async_client.post(
        "/api/matches",
        json={"opponent_telegram_id": 502, "score": "3:1"},
        headers=auth_headers(p1.telegram_id),
    )
    assert response.status_code == 201
    match_id = response.json()["id"]
    notifier.sent.clear()

    # ACT
    response = await async_client.post(
        f"/api/matches/{match_id}/confirm", headers=auth_headers(502)
    )

    # ASSERT
    assert response.status_code == 500
    assert response.json()["detail"] == "Rating calculation failed"
    assert notifier.sent == []

    response = await async_client.get(
        f"/api/matches/{match_id}", headers=auth_headers(502)
    )
    assert response.json()["status"] == "pending"
