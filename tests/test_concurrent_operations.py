# tests/test_concurrent_operations.py

"""Concurrency tests: a match is resolved once and ratings are applied once."""

import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from squashrank.db.models import Match, MatchStatus, Player
from squashrank import config
from squashrank.exceptions import MatchAlreadyResolvedError, TierAlreadySelectedError
from squashrank.rating.glicko2_engine import rate_match
from squashrank.services import match_service, player_service
from squashrank.services.match_service import MatchConfirmation, MatchRejection


async def _confirm_in_own_session(
    session_factory: async_sessionmaker[AsyncSession], match_id: int, player_id: int
):
    async with session_factory() as session:
        return await match_service.confirm_match(session, match_id, player_id)


async def _reject_in_own_session(
    session_factory: async_sessionmaker[AsyncSession], match_id: int, player_id: int
):
    async with session_factory() as session:
        return await match_service.reject_match(session, match_id, player_id)


async def _load_player(
    session_factory: async_sessionmaker[AsyncSession], player_id: int
) -> Player:
    async with session_factory() as session:
        return await session.get(Player, player_id)


@pytest.mark.asyncio
async def test_simultaneous_confirmations_apply_ratings_once(
    session_factory, make_player
):
    # ARRANGE
    p1 = await make_player()
    p2 = await make_player()
    async with session_factory() as session:
        match = await match_service.create_pending_match(session, p1.id, p2.id, 3, 1)
    expected_p1, expected_p2 = rate_match(p1.rating_state, p2.rating_state, 1.0)

    # ACT
    results = await asyncio.gather(
        _confirm_in_own_session(session_factory, match.id, p2.id),
        _confirm_in_own_session(session_factory, match.id, p2.id),
        return_exceptions=True,
    )

    # ASSERT
    successes = [r for r in results if isinstance(r, MatchConfirmation)]
    failures = [r for r in results if isinstance(r, MatchAlreadyResolvedError)]
    assert len(successes) == 1
    assert len(failures) == 1

    reporter = await _load_player(session_factory, p1.id)
    opponent = await _load_player(session_factory, p2.id)
    assert reporter.rating == expected_p1.rating
    assert reporter.rd == expected_p1.rd
    assert opponent.rating == expected_p2.rating
    assert opponent.vol == expected_p2.vol
    assert reporter.version == 2
    assert opponent.version == 2


@pytest.mark.asyncio
async def test_confirm_and_reject_race_has_one_winner(session_factory, make_player):
    # ARRANGE
    p1 = await make_player()
    p2 = await make_player()
    async with session_factory() as session:
        match = await match_service.create_pending_match(session, p1.id, p2.id, 1, 3)

    # ACT
    results = await asyncio.gather(
        _confirm_in_own_session(session_factory, match.id, p2.id),
        _reject_in_own_session(session_factory, match.id, p2.id),
        return_exceptions=True,
    )

    # ASSERT
    winners = [r for r in results if isinstance(r, (MatchConfirmation, MatchRejection))]
    losers = [r for r in results if isinstance(r, MatchAlreadyResolvedError)]
    assert len(winners) == 1
    assert len(losers) == 1

    async with session_factory() as session:
        final = await match_service.get_match(session, match.id)
    reporter = await _load_player(session_factory, p1.id)
    if isinstance(winners[0], MatchConfirmation):
        assert final.status == MatchStatus.CONFIRMED.value
        assert reporter.rating < 1500
    else:
        assert final.status == MatchStatus.REJECTED.value
        assert reporter.rating == 1500.0


@pytest.mark.asyncio
async def test_matches_sharing_a_player_both_apply(session_factory, make_player):
    """Two confirmations touching the same player must not lose an update."""
    # ARRANGE
    hub = await make_player()
    left = await make_player()
    right = await make_player()
    async with session_factory() as session:
        first = await match_service.create_pending_match(
            session, hub.id, left.id, 3, 0
        )
        second = await match_service.create_pending_match(
            session, hub.id, right.id, 3, 0
        )

    # ACT
    results = await asyncio.gather(
        _confirm_in_own_session(session_factory, first.id, left.id),
        _confirm_in_own_session(session_factory, second.id, right.id),
    )

    # ASSERT
    shared = await _load_player(session_factory, hub.id)
    assert shared.version == 3
    # Whichever ran second started from the first one's result
    before_states = sorted(r.reporter.before.rating for r in results)
    assert before_states[0] == 1500.0
    assert before_states[1] > 1500.0
    assert shared.rating == max(r.reporter.after.rating for r in results)


@pytest.mark.asyncio
async def test_claim_admits_only_the_first_resolver(session_factory, make_player):
    """The guarded status update alone refuses a second resolver."""
    p1 = await make_player()
    p2 = await make_player()
    async with session_factory() as session:
        match = await match_service.create_pending_match(session, p1.id, p2.id, 3, 1)

    async with session_factory() as first:
        assert await Match.claim(first, match.id, MatchStatus.CONFIRMED) is True
        await first.commit()

    async with session_factory() as second:
        assert await Match.claim(second, match.id, MatchStatus.REJECTED) is False
        await second.commit()

    async with session_factory() as session:
        status = (
            await session.execute(select(Match.status).where(Match.id == match.id))
        ).scalar_one()
    assert status == MatchStatus.CONFIRMED.value


# =============================================================================
# Tier selection against confirmation
# =============================================================================


async def _select_tier_in_own_session(
    session_factory: async_sessionmaker[AsyncSession], player_id: int, tier: str
):
    async with session_factory() as session:
        return await player_service.select_initial_tier(session, player_id, tier)


@pytest.mark.asyncio
async def test_tier_selection_after_confirmation_keeps_confirmed_rating(
    session_factory, make_player
):
    """A session holding a stale uninitialized player cannot reset the rating."""
    # ARRANGE
    p1 = await make_player()
    p2 = await make_player()
    async with session_factory() as session:
        match = await match_service.create_pending_match(session, p1.id, p2.id, 3, 1)

    async with session_factory() as stale:
        cached = await stale.get(Player, p1.id)
        assert cached.initialized is False

        # ACT
        confirmation = await _confirm_in_own_session(session_factory, match.id, p2.id)
        with pytest.raises(TierAlreadySelectedError):
            await player_service.select_initial_tier(stale, p1.id, "beginner")

    # ASSERT
    stored = await _load_player(session_factory, p1.id)
    assert stored.rating == confirmation.reporter.after.rating
    assert stored.rd == confirmation.reporter.after.rd
    assert stored.tier is None
    assert stored.version == 2


@pytest.mark.asyncio
async def test_tier_selection_and_confirmation_race(session_factory, make_player):
    """Either the tier lands first and feeds the match, or it is refused."""
    # ARRANGE
    p1 = await make_player()
    p2 = await make_player()
    async with session_factory() as session:
        match = await match_service.create_pending_match(session, p1.id, p2.id, 3, 1)
    beginner = config.INITIAL_TIERS["beginner"]

    # ACT
    tier_result, confirmation = await asyncio.gather(
        _select_tier_in_own_session(session_factory, p1.id, "beginner"),
        _confirm_in_own_session(session_factory, match.id, p2.id),
        return_exceptions=True,
    )

    # ASSERT
    assert isinstance(confirmation, MatchConfirmation)
    stored = await _load_player(session_factory, p1.id)
    assert stored.rating == confirmation.reporter.after.rating
    if isinstance(tier_result, TierAlreadySelectedError):
        assert confirmation.reporter.before.rating == 1500.0
        assert stored.version == 2
    else:
        assert isinstance(tier_result, Player)
        assert confirmation.reporter.before.rating == beginner.rating
        assert confirmation.reporter.before.rd == beginner.rd
        assert stored.version == 3


@pytest.mark.asyncio
async def test_tier_claim_refuses_initialized_player(session_factory, make_player):
    """The guarded tier write alone refuses an initialized player."""
    player = await make_player(initialized=True, rating=1650.0, rd=80.0)
    preset = config.INITIAL_TIERS["beginner"]

    async with session_factory() as session:
        claimed = await Player.claim_initial_tier(
            session, player.id, "beginner", preset
        )
        await session.commit()

    assert claimed is False
    stored = await _load_player(session_factory, player.id)
    assert (stored.rating, stored.rd) == (1650.0, 80.0)
