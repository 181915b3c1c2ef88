import pytest
from hypothesis import given, strategies as st

from ladder.services import rating_engine
from ladder.services.rating_engine import (
    expected_score, get_k_factor, new_rating, actual_score, rate_pair, predict_match_outcome
)

ratings = st.floats(min_value=0, max_value=4000, allow_nan=False, allow_infinity=False)
games = st.integers(min_value=0, max_value=500)


@given(ratings, ratings)
def test_expected_scores_sum_to_one(a, b):
    assert expected_score(a, b) + expected_score(b, a) == pytest.approx(1.0)


@given(ratings, ratings, games)
def test_win_never_lowers_rating(a, b, played):
    current = round(a)
    assert new_rating(current, expected_score(current, b), rating_engine.WIN, played) >= current


@given(ratings, ratings, games)
def test_loss_never_raises_rating(a, b, played):
    current = round(a)
    assert new_rating(current, expected_score(current, b), rating_engine.LOSS, played) <= current


@given(ratings, ratings, games)
def test_draw_moves_toward_opponent(a, b, played):
    current = round(a)
    expected = expected_score(current, b)
    updated = new_rating(current, expected, rating_engine.DRAW, played)
    if expected < 0.5:
        assert updated >= current
    else:
        assert updated <= current


@given(ratings, games)
def test_equal_ratings_split_points_evenly(a, played):
    current = round(a)
    new1, new2 = rate_pair(current, current, played, played, rating_engine.WIN)
    assert new1 - current == current - new2


def test_k_factor_boundary():
    assert get_k_factor(0) == 64
    assert get_k_factor(9) == 64
    assert get_k_factor(10) == 32
    assert get_k_factor(250) == 32


def test_new_players_first_game():
    assert rate_pair(1000, 1000, 0, 0, rating_engine.WIN) == (1032, 968)
    assert rate_pair(1000, 1000, 0, 0, rating_engine.DRAW) == (1000, 1000)


def test_established_players_first_game():
    assert rate_pair(1000, 1000, 10, 10, rating_engine.WIN) == (1016, 984)


def test_half_points_round_up():
    # round() would give 1000 here
    assert new_rating(1000.5, 0.5, rating_engine.DRAW, 20) == 1001
    assert new_rating(999.5, 0.5, rating_engine.DRAW, 20) == 1000


def test_extreme_gap_barely_moves_favourite():
    new1, new2 = rate_pair(3000, 100, 50, 50, rating_engine.WIN)
    assert new1 == 3000
    assert new2 == 100


def test_actual_score_is_relative_to_player1():
    assert actual_score(1, 2, 1) == 1.0
    assert actual_score(1, 2, 2) == 0.0
    assert actual_score(1, 2, None) == 0.5


def test_actual_score_rejects_outsider():
    with pytest.raises(ValueError):
        actual_score(1, 2, 3)


def test_predict_match_outcome():
    prediction = predict_match_outcome(1200, 1000)
    assert prediction["player1_win_probability"] > 0.5
    assert prediction["player1_win_probability"] + prediction["player2_win_probability"] == pytest.approx(1.0)
    assert prediction["rating_difference"] == 200
