# src/squashrank/rating/glicko2_engine.py

"""
A from-scratch implementation of the Glicko-2 rating system.
The formulas and steps are based on the paper by Dr. Mark Glickman:
https://www.glicko.net/glicko/glicko2.pdf

Everything here is a pure function of its arguments. The system constant
``tau`` is passed explicitly and results are returned as new immutable values.
"""

import math
from dataclasses import dataclass

from squashrank.exceptions import RatingCalculationError

# Conversion factor between the Glicko and Glicko-2 scales.
GLICKO2_SCALE = 173.7178
RATING_ORIGIN = 1500.0

# Convergence tolerance of the volatility iteration.
EPSILON = 0.000001
MAX_ITERATIONS = 100


# ===============================================
# == Glicko-2 Core Implementation
# ===============================================


@dataclass(frozen=True)
class Glicko2Rating:
    """A player's rating state in the standard Glicko scale."""

    rating: float = 1500.0
    rd: float = 350.0
    vol: float = 0.06


def _g(phi: float) -> float:
    """The g() function from the Glickman paper."""
    return 1 / math.sqrt(1 + 3 * phi**2 / math.pi**2)


def _expected(mu: float, mu_j: float, phi_j: float) -> float:
    """The E() function, expected outcome against one opponent."""
    return 1 / (1 + math.exp(-_g(phi_j) * (mu - mu_j)))


def _to_glicko2(rating: Glicko2Rating) -> tuple[float, float]:
    return (
        (rating.rating - RATING_ORIGIN) / GLICKO2_SCALE,
        rating.rd / GLICKO2_SCALE,
    )


def _compute_new_sigma(
    delta: float, phi: float, v: float, sigma: float, tau: float
) -> float:
    """
    Determines the new volatility `sigma'` with the Illinois algorithm
    (Step 5 of the paper).
    """
    a = math.log(sigma**2)
    delta_sq = delta**2
    phi_sq = phi**2
    tau_sq = tau**2

    def f(x: float) -> float:
        ex = math.exp(x)
        return (
            ex * (delta_sq - phi_sq - v - ex) / (2 * (phi_sq + v + ex) ** 2)
            - (x - a) / tau_sq
        )

    A = a
    if delta_sq > phi_sq + v:
        B = math.log(delta_sq - phi_sq - v)
    else:
        k = 1
        while f(a - k * tau) < 0:
            k += 1
            if k > MAX_ITERATIONS:
                raise RatingCalculationError(
                    "Could not bracket the new volatility"
                )
        B = a - k * tau

    f_A = f(A)
    f_B = f(B)

    iterations = 0
    while abs(B - A) > EPSILON:
        iterations += 1
        if iterations > MAX_ITERATIONS:
            raise RatingCalculationError("Volatility iteration did not converge")
        C = A + (A - B) * f_A / (f_B - f_A)
        f_C = f(C)
        if f_C * f_B <= 0:
            A = B
            f_A = f_B
        else:
            f_A /= 2
        B = C
        f_B = f_C

    return math.exp(A / 2)


def rate(
    player: Glicko2Rating,
    results: list[tuple[Glicko2Rating, float]],
    tau: float = 0.5,
) -> Glicko2Rating:
    """
    Calculates a player's new rating after one rating period.

    Args:
        player: The player's rating state before the period.
        results: ``(opponent_rating, score)`` pairs, score being 1, 0.5 or 0.
        tau: The system constant constraining volatility change.

    Raises:
        RatingCalculationError: If the computation produces no valid result.
    """
    try:
        return _rate(player, results, tau)
    except (OverflowError, ZeroDivisionError, ValueError) as e:
        raise RatingCalculationError(f"Numeric failure in Glicko-2 update: {e}") from e


def _rate(
    player: Glicko2Rating,
    results: list[tuple[Glicko2Rating, float]],
    tau: float,
) -> Glicko2Rating:
    # Step 1 & 2: Convert to Glicko-2 scale
    mu, phi = _to_glicko2(player)
    sigma = player.vol

    if not results:
        # The player didn't play: only RD widens (Step 6 applied alone)
        phi_star = math.sqrt(phi**2 + sigma**2)
        return Glicko2Rating(player.rating, phi_star * GLICKO2_SCALE, sigma)

    # Step 3: Estimated variance of the player's rating
    v_inv = 0.0
    improvement = 0.0
    for opponent, score in results:
        mu_j, phi_j = _to_glicko2(opponent)
        g_phi_j = _g(phi_j)
        E = _expected(mu, mu_j, phi_j)
        v_inv += g_phi_j**2 * E * (1 - E)
        improvement += g_phi_j * (score - E)

    if not v_inv > 0 or not math.isfinite(v_inv):
        raise RatingCalculationError("Estimated variance is not positive")
    v = 1 / v_inv

    # Step 4: Estimated improvement in rating
    delta = v * improvement

    # Step 5: New volatility
    sigma_prime = _compute_new_sigma(delta, phi, v, sigma, tau)

    # Step 6: Pre-rating period value
    phi_star = math.sqrt(phi**2 + sigma_prime**2)

    # Step 7: New rating deviation and rating
    phi_prime = 1 / math.sqrt(1 / phi_star**2 + 1 / v)
    mu_prime = mu + phi_prime**2 * improvement

    # Step 8: Back to the original scale
    new_rating = Glicko2Rating(
        rating=mu_prime * GLICKO2_SCALE + RATING_ORIGIN,
        rd=phi_prime * GLICKO2_SCALE,
        vol=sigma_prime,
    )
    _check_finite(new_rating)
    return new_rating


def _check_finite(rating: Glicko2Rating) -> None:
    if not math.isfinite(rating.rating):
        raise RatingCalculationError("Rating is not finite")
    if not (math.isfinite(rating.rd) and rating.rd > 0):
        raise RatingCalculationError("Rating deviation is not a positive number")
    if not (math.isfinite(rating.vol) and rating.vol > 0):
        raise RatingCalculationError("Volatility is not a positive number")


# ===============================================
# == Pairwise update
# ===============================================


def rate_match(
    player_a: Glicko2Rating,
    player_b: Glicko2Rating,
    outcome_a: float,
    tau: float = 0.5,
) -> tuple[Glicko2Rating, Glicko2Rating]:
    """
    Updates both sides of a single game as a one-game rating period.

    Both new states are computed from the states before the game, so
    ``rate_match(a, b, s)`` and ``rate_match(b, a, 1 - s)`` give the same
    pair in swapped order.
    """
    new_a = rate(player_a, [(player_b, outcome_a)], tau)
    new_b = rate(player_b, [(player_a, 1 - outcome_a)], tau)
    return new_a, new_b
