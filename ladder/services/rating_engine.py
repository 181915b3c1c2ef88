"""
Elo rating engine.

Pure functions only: no database, no clock, no logging side effects.
Persistence of the results lives in ``rating_service``.
"""
import math
from typing import Optional, Tuple

from ladder.core.config import settings

# Rating system constants
DEFAULT_RATING = settings.DEFAULT_RATING
K_FACTOR = settings.K_FACTOR                          # Established players
PROVISIONAL_K_FACTOR = settings.PROVISIONAL_K_FACTOR  # Fewer than PROVISIONAL_THRESHOLD games
PROVISIONAL_THRESHOLD = settings.PROVISIONAL_THRESHOLD

WIN = 1.0
DRAW = 0.5
LOSS = 0.0


def expected_score(rating_a: float, rating_b: float) -> float:
    """Expected score for player A against player B: 1 / (1 + 10^((b - a) / 400))."""
    return 1.0 / (1.0 + math.pow(10, (rating_b - rating_a) / 400.0))


def get_k_factor(games_played: int) -> int:
    """
    K-factor for a player who has completed ``games_played`` games.

    The count excludes the match being rated.
    """
    if games_played < PROVISIONAL_THRESHOLD:
        return PROVISIONAL_K_FACTOR
    return K_FACTOR


def new_rating(current: float, expected: float, actual: float, games_played: int) -> int:
    """Updated rating, rounded to the nearest integer."""
    k = get_k_factor(games_played)
    # Half rounds up (1016.5 -> 1017), not to even
    return int(math.floor(current + k * (actual - expected) + 0.5))


def actual_score(player1_id: int, player2_id: int, winner_id: Optional[int]) -> float:
    """Result from player 1's perspective: 1 win, 0.5 draw, 0 loss."""
    if winner_id is None:
        return DRAW
    if winner_id == player1_id:
        return WIN
    if winner_id == player2_id:
        return LOSS
    raise ValueError(f"Winner {winner_id} did not play in this match")


def rate_pair(
    rating1: float,
    rating2: float,
    games1: int,
    games2: int,
    result: float
) -> Tuple[int, int]:
    """
    Rate both sides of one result.
    Returns (new_player1_rating, new_player2_rating)
    """
    player1_expected = expected_score(rating1, rating2)
    player2_expected = expected_score(rating2, rating1)

    return (
        new_rating(rating1, player1_expected, result, games1),
        new_rating(rating2, player2_expected, 1.0 - result, games2),
    )


def predict_match_outcome(rating1: float, rating2: float) -> dict:
    """Win probabilities for a potential pairing."""
    player1_win_prob = expected_score(rating1, rating2)
    return {
        "player1_win_probability": player1_win_prob,
        "player2_win_probability": 1.0 - player1_win_prob,
        "rating_difference": abs(rating1 - rating2),
    }
