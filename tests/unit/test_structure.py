"""Unit tests for the bracket skeleton builder."""

import pytest

from cuebracket.bracket.seeding import SeedAssignment
from cuebracket.bracket.structure import BracketStructureBuilder


def _seeds(count):
    return [SeedAssignment(participant_id=100 + n, seed=n, rating=0) for n in range(1, count + 1)]


def test_build_five_participants():
    structure = BracketStructureBuilder().build(5)

    assert structure.bracket_size == 8
    assert structure.total_rounds == 3
    assert structure.bye_count == 3
    assert [r.name for r in structure.rounds] == ["Quarter-Finals", "Semi-Finals", "Final"]
    assert [r.match_count for r in structure.rounds] == [4, 2, 1]
    assert structure.round(3).match_type == "final"


def test_assign_slots_leaves_byes_for_missing_seeds():
    builder = BracketStructureBuilder()
    structure = builder.build(5)

    pairs = builder.assign_slots(_seeds(5), structure)

    as_seeds = [
        (first.seed if first else None, second.seed if second else None)
        for first, second in pairs
    ]
    assert as_seeds == [(1, None), (4, 5), (2, None), (3, None)]


def test_assign_slots_full_bracket_has_no_byes():
    builder = BracketStructureBuilder()
    structure = builder.build(4)
    pairs = builder.assign_slots(_seeds(4), structure)
    assert all(first and second for first, second in pairs)


def test_assign_slots_rejects_gaps_in_seeds():
    builder = BracketStructureBuilder()
    structure = builder.build(3)
    seeds = [
        SeedAssignment(participant_id=1, seed=1, rating=0),
        SeedAssignment(participant_id=2, seed=2, rating=0),
        SeedAssignment(participant_id=3, seed=4, rating=0),
    ]
    with pytest.raises(ValueError):
        builder.assign_slots(seeds, structure)


def test_assign_slots_rejects_wrong_structure():
    builder = BracketStructureBuilder()
    with pytest.raises(ValueError):
        builder.assign_slots(_seeds(3), builder.build(4))
