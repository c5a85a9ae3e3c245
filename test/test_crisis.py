"""
Crisis flow: triggers, contributions against the per-player cap,
success on reaching the threshold, failure when rounds run out.
"""

from dataclasses import replace

import pytest

from coalition.engine.actions import contribute_to_crisis, mark_ready, timeout_expired
from coalition.engine.crisis import find_triggered_crisis
from coalition.engine.definitions import Definitions
from coalition.engine.errors import ResourceExhaustedError, StateConflictError, ValidationError
from coalition.engine.state import NationState


@pytest.fixture
def in_crisis(table):
    """Budget at the economic-crash trigger; p1's roll is taken over by the crisis."""
    table.state.nation = NationState(stability=10, budget=4)
    table.roll(4, "early_001")
    return table


def test_threshold_trigger_starts_crisis(in_crisis):
    state = in_crisis.state
    assert state.phase == "crisis"
    assert state.active_crisis.crisis_id == "economic-crash"
    assert state.active_crisis.turns_remaining == 2
    assert state.last_crisis_turn == 1
    # The roll was voided
    assert state.dice_roll is None
    assert state.current_card_id is None
    assert "crisis_started" in in_crisis.event_types()


def test_random_trigger_needs_minimum_turn(table, defs):
    state = table.state
    assert find_triggered_crisis(state, defs, crisis_roll=0) is None
    state.turn_number = 10
    assert find_triggered_crisis(state, defs, crisis_roll=14).id == "external-threat"
    assert find_triggered_crisis(state, defs, crisis_roll=15) is None


def test_first_matching_crisis_in_definition_order(table, defs):
    table.state.nation = NationState(stability=3, budget=3)
    assert find_triggered_crisis(table.state, defs, None).id == "economic-crash"


def test_cooldown_blocks_new_crisis(table, defs):
    table.state.nation = NationState(stability=10, budget=4)
    table.state.last_crisis_turn = 1
    assert find_triggered_crisis(table.state, defs, None) is None
    table.state.turn_number = 4
    assert find_triggered_crisis(table.state, defs, None).id == "economic-crash"


def test_contribution_moves_influence_to_pool(in_crisis):
    in_crisis.do(contribute_to_crisis("p2", 2))
    state = in_crisis.state
    assert state.players["p2"].influence == 3
    assert state.active_crisis.contributions == {"p2": 2}
    assert in_crisis.event_types() == ["influence_changed", "crisis_contribution"]


def test_contribution_up_to_cap_accepted(in_crisis):
    in_crisis.do(contribute_to_crisis("p2", 2))
    in_crisis.do(contribute_to_crisis("p2", 1))
    assert in_crisis.state.active_crisis.contributions["p2"] == 3


def test_contribution_past_cap_rejected(in_crisis):
    in_crisis.do(contribute_to_crisis("p2", 3))
    with pytest.raises(ValidationError):
        in_crisis.do(contribute_to_crisis("p2", 1))
    assert in_crisis.state.active_crisis.contributions["p2"] == 3
    assert in_crisis.state.players["p2"].influence == 2


def test_contribution_over_influence_rejected(in_crisis):
    in_crisis.state.players["p3"].influence = 1
    with pytest.raises(ResourceExhaustedError):
        in_crisis.do(contribute_to_crisis("p3", 2))


def test_contribution_must_be_positive(in_crisis):
    with pytest.raises(ValidationError):
        in_crisis.do(contribute_to_crisis("p1", 0))
    with pytest.raises(ValidationError):
        in_crisis.do(contribute_to_crisis("p1", -1))


def test_reaching_threshold_resolves_success(in_crisis):
    in_crisis.do(contribute_to_crisis("p1", 3))
    in_crisis.do(contribute_to_crisis("p2", 3))
    assert in_crisis.state.phase == "crisis"
    in_crisis.do(contribute_to_crisis("p3", 2))

    state = in_crisis.state
    assert state.active_crisis is None
    assert state.phase == "waiting"
    assert state.nation == NationState(stability=12, budget=5)
    # The interrupted turn resumes with the same active player
    assert state.turn_number == 1
    assert state.active_player_id == "p1"

    resolved = next(e for e in in_crisis.events if e.type == "crisis_resolved")
    assert resolved.payload["success"] is True
    assert resolved.payload["total_contribution"] == 8
    assert resolved.payload["concepts_triggered"] == ["collective-action", "crisis-management"]


def test_success_on_the_contribution_that_reaches_threshold(table, defs):
    small = replace(defs.crises["economic-crash"], id="small-crash", contribution_threshold=5)
    table.defs = Definitions(defs.ideologies, defs.cards, {small.id: small}, defs.concepts)
    table.state.nation = NationState(stability=10, budget=4)
    table.roll(4, "early_001")

    table.do(contribute_to_crisis("p1", 2))
    assert table.state.active_crisis.turns_remaining == 2
    table.do(contribute_to_crisis("p2", 3))

    resolved = next(e for e in table.events if e.type == "crisis_resolved")
    assert resolved.payload["success"] is True
    assert resolved.payload["contributions"] == {"p1": 2, "p2": 3}
    assert resolved.payload["turns_remaining"] == 2
    assert table.state.active_crisis is None


def test_rounds_running_out_resolves_failure(in_crisis):
    in_crisis.do(contribute_to_crisis("p1", 2))
    for _ in range(2):
        for pid in ("p1", "p2", "p3"):
            in_crisis.do(mark_ready(pid))

    state = in_crisis.state
    assert state.active_crisis is None
    assert state.phase == "waiting"
    assert state.nation == NationState(stability=8, budget=2)
    assert state.players["p1"].influence == 3

    resolved = next(e for e in in_crisis.events if e.type == "crisis_resolved")
    assert resolved.payload["success"] is False
    assert resolved.payload["concepts_triggered"] == ["collective-action"]


def test_round_closes_once_everyone_ready(in_crisis):
    seq = in_crisis.state.phase_seq
    for pid in ("p1", "p2", "p3"):
        in_crisis.do(mark_ready(pid))
    crisis = in_crisis.state.active_crisis
    assert crisis.turns_remaining == 1
    assert crisis.ready == []
    assert in_crisis.state.phase_seq == seq + 1


def test_ready_twice_in_one_round_rejected(in_crisis):
    in_crisis.do(mark_ready("p1"))
    with pytest.raises(StateConflictError):
        in_crisis.do(mark_ready("p1"))


def test_round_timeout_is_pinned_to_its_round(in_crisis):
    state = in_crisis.state
    stale = timeout_expired("crisis", state.turn_number, state.phase_seq)
    in_crisis.do(stale)
    assert in_crisis.state.active_crisis.turns_remaining == 1
    with pytest.raises(StateConflictError):
        in_crisis.do(stale)


def test_crisis_failure_can_collapse_nation(in_crisis):
    in_crisis.state.nation = NationState(stability=2, budget=4)
    for _ in range(2):
        for pid in ("p1", "p2", "p3"):
            in_crisis.do(mark_ready(pid))
    state = in_crisis.state
    assert state.status == "collapsed"
    assert state.collapse_reason == "stability"
    assert "nation_collapsed" in in_crisis.event_types()


def test_roll_after_crisis_is_not_retriggered(in_crisis):
    for _ in range(2):
        for pid in ("p1", "p2", "p3"):
            in_crisis.do(mark_ready(pid))
    # Budget 2 is still under the trigger, but the cooldown holds
    in_crisis.roll(4, "early_001")
    assert in_crisis.state.phase == "reviewing"
