"""Unit tests for bracket positional math."""

import pytest

from cuebracket import draw
from cuebracket.statuses import (
    MATCH_FINAL,
    MATCH_QUARTER_FINAL,
    MATCH_REGULAR,
    MATCH_SEMI_FINAL,
    SLOT_PLAYER1,
    SLOT_PLAYER2,
)


@pytest.mark.parametrize(
    "participants, expected",
    [(2, 2), (3, 4), (4, 4), (5, 8), (8, 8), (9, 16), (17, 32), (64, 64)],
)
def test_calculate_bracket_size(participants, expected):
    assert draw.calculate_bracket_size(participants) == expected


@pytest.mark.parametrize("participants", [-1, 0, 1])
def test_calculate_bracket_size_rejects_fewer_than_two(participants):
    with pytest.raises(ValueError):
        draw.calculate_bracket_size(participants)


def test_total_rounds_and_byes():
    assert draw.calculate_total_rounds(2) == 1
    assert draw.calculate_total_rounds(32) == 5
    assert draw.calculate_bye_count(8, 5) == 3
    assert draw.calculate_bye_count(16, 16) == 0

    with pytest.raises(ValueError):
        draw.calculate_total_rounds(6)
    with pytest.raises(ValueError):
        draw.calculate_bye_count(4, 5)


def test_seed_positions_standard_pairing():
    assert draw.seed_positions(2) == [1, 2]
    assert draw.seed_positions(8) == [1, 8, 4, 5, 2, 7, 3, 6]
    assert draw.seed_positions(16) == [1, 16, 8, 9, 4, 13, 5, 12, 2, 15, 7, 10, 3, 14, 6, 11]


@pytest.mark.parametrize("size", [2, 4, 8, 16, 32, 64])
def test_seed_positions_pairs_sum_to_size_plus_one(size):
    order = draw.seed_positions(size)
    assert sorted(order) == list(range(1, size + 1))
    for i in range(0, size, 2):
        assert order[i] + order[i + 1] == size + 1


@pytest.mark.parametrize("size", [4, 8, 16, 32])
def test_top_two_seeds_in_opposite_halves(size):
    order = draw.seed_positions(size)
    half = size // 2
    assert order.index(1) < half
    assert order.index(2) >= half


def test_parent_slot_and_feeders():
    assert draw.parent_slot(1, 0) == (2, 0, SLOT_PLAYER1)
    assert draw.parent_slot(1, 1) == (2, 0, SLOT_PLAYER2)
    assert draw.parent_slot(2, 6) == draw.NextSlot(3, 3, SLOT_PLAYER1)
    assert draw.feeder_slots(3) == (6, 7)

    with pytest.raises(ValueError):
        draw.parent_slot(1, -1)


@pytest.mark.parametrize(
    "round_number, total_rounds, name, match_type",
    [
        (1, 1, "Final", MATCH_FINAL),
        (1, 2, "Semi-Finals", MATCH_SEMI_FINAL),
        (1, 3, "Quarter-Finals", MATCH_QUARTER_FINAL),
        (1, 4, "Round of 16", MATCH_REGULAR),
        (2, 5, "Round of 16", MATCH_REGULAR),
        (1, 6, "Round of 64", MATCH_REGULAR),
    ],
)
def test_round_names(round_number, total_rounds, name, match_type):
    assert draw.round_name(round_number, total_rounds) == name
    assert draw.match_type_for_round(round_number, total_rounds) == match_type


def test_round_name_outside_bracket_raises():
    with pytest.raises(ValueError):
        draw.round_name(4, 3)
