"""
Nation bounds, roll and movement modifiers, collapse and victory checks.
"""

from coalition.engine.nation import (
    apply_nation_changes,
    check_collapse,
    check_victory,
    modified_roll,
    nation_modifier,
    roll_modifier,
)
from coalition.engine.state import NationState, Player


def test_changes_are_clamped():
    nation = apply_nation_changes(NationState(stability=14, budget=-4), 5, -5)
    assert nation == NationState(stability=15, budget=-5)


def test_apply_returns_new_nation():
    before = NationState(stability=10, budget=8)
    after = apply_nation_changes(before, -1, 2)
    assert before == NationState(stability=10, budget=8)
    assert after == NationState(stability=9, budget=10)


def test_collapse_reasons():
    assert check_collapse(NationState(stability=1, budget=-4)) is None
    assert check_collapse(NationState(stability=0, budget=8)) == "stability"
    assert check_collapse(NationState(stability=5, budget=-5)) == "budget"


def test_stability_collapse_reported_first():
    assert check_collapse(NationState(stability=0, budget=-5)) == "stability"


def test_roll_modifier_from_budget():
    assert roll_modifier(NationState(stability=10, budget=12)) == 1
    assert roll_modifier(NationState(stability=10, budget=8)) == 0
    assert roll_modifier(NationState(stability=10, budget=2)) == -1
    assert modified_roll(1, NationState(stability=10, budget=2)) == 1
    assert modified_roll(6, NationState(stability=10, budget=12)) == 7


def test_nation_modifier_from_stability():
    assert nation_modifier(NationState(stability=12, budget=8)) == 1
    assert nation_modifier(NationState(stability=8, budget=8)) == 0
    assert nation_modifier(NationState(stability=3, budget=8)) == -1


def test_victory_needs_track_end_and_influence():
    players = [
        Player("p1", "Alice", 0, position=35, influence=2),
        Player("p2", "Bob", 1, position=34, influence=9),
    ]
    assert check_victory(players, 35) is None
    players[0].influence = 3
    assert check_victory(players, 35) == "p1"


def test_victory_tie_break_influence_then_seat():
    players = [
        Player("p1", "Alice", 0, position=35, influence=4),
        Player("p2", "Bob", 1, position=35, influence=6),
        Player("p3", "Cara", 2, position=35, influence=6),
    ]
    assert check_victory(players, 35) == "p2"
    players[1].influence = 4
    players[2].influence = 4
    assert check_victory(players, 35) == "p1"
