"""
Reducer: lobby rules, phase gating, a full turn end to end, timeouts,
disconnection handling and the terminal conditions.
"""

import pytest

from coalition.config import GameSettings
from coalition.engine.actions import (
    Action,
    acknowledge_results,
    cast_vote,
    join_room,
    mark_ready,
    player_disconnected,
    roll_dice,
    select_ideology,
    select_option,
    send_chat_message,
    start_game,
    timeout_expired,
)
from coalition.engine.errors import (
    AuthorizationError,
    ResourceExhaustedError,
    StateConflictError,
    ValidationError,
)
from coalition.engine.reducer import apply_action
from coalition.engine.state import NationState
from coalition.engine.utils import initialize_room_state


# ===== Lobby =====

def test_first_joiner_is_host(defs):
    state = initialize_room_state("R1")
    state, events = apply_action(state, join_room("p1", "Alice"), defs)
    assert state.host_id == "p1"
    assert [e.type for e in events] == ["player_joined", "host_changed"]
    state, events = apply_action(state, join_room("p2", "Bob"), defs)
    assert state.host_id == "p1"
    assert state.players["p2"].seat == 1


def test_display_name_required(defs):
    state = initialize_room_state("R1")
    with pytest.raises(ValidationError):
        apply_action(state, join_room("p1", "   "), defs)
    with pytest.raises(ValidationError):
        apply_action(state, join_room("p1", "x" * 33), defs)


def test_room_full(defs):
    state = initialize_room_state("R1", GameSettings(max_players=3))
    for i in range(3):
        state, _ = apply_action(state, join_room(f"p{i}", f"Player {i}"), defs)
    with pytest.raises(StateConflictError):
        apply_action(state, join_room("p9", "Late"), defs)


def test_ideology_unique_and_known(lobby, defs):
    with pytest.raises(StateConflictError):
        apply_action(lobby, select_ideology("p2", "progressive"), defs)
    with pytest.raises(ValidationError):
        apply_action(lobby, select_ideology("p2", "anarchist"), defs)
    state, _ = apply_action(lobby, select_ideology("p2", "liberal"), defs)
    assert state.players["p2"].ideology == "liberal"


def test_only_host_starts(lobby, defs):
    with pytest.raises(AuthorizationError):
        apply_action(lobby, start_game("p2"), defs)


def test_start_needs_enough_players(defs):
    state = initialize_room_state("R1")
    for pid, ideology in (("p1", "progressive"), ("p2", "liberal")):
        state, _ = apply_action(state, join_room(pid, pid.upper()), defs)
        state, _ = apply_action(state, select_ideology(pid, ideology), defs)
    with pytest.raises(StateConflictError):
        apply_action(state, start_game("p1"), defs)


def test_start_needs_every_ideology(defs):
    state = initialize_room_state("R1")
    for pid in ("p1", "p2", "p3"):
        state, _ = apply_action(state, join_room(pid, pid.upper()), defs)
    state, _ = apply_action(state, select_ideology("p1", "progressive"), defs)
    with pytest.raises(StateConflictError):
        apply_action(state, start_game("p1"), defs)


def test_start_deals_resources(lobby, defs):
    state, events = apply_action(lobby, start_game("p1"), defs)
    assert state.status == "playing"
    assert state.phase == "waiting"
    assert state.turn_number == 1
    assert state.active_player_id == "p1"
    assert state.nation == NationState(stability=10, budget=8)
    for player in state.players.values():
        assert player.influence == 5
        assert player.own_tokens == 3
        assert player.position == 0
    assert [e.type for e in events] == ["game_started", "turn_started"]


def test_join_after_start_rejected(table):
    with pytest.raises(StateConflictError):
        table.do(join_room("p4", "Dan"))


def test_lobby_disconnect_frees_seat_and_passes_host(lobby, defs):
    state, events = apply_action(lobby, player_disconnected("p1"), defs)
    assert "p1" not in state.players
    assert state.host_id == "p2"
    assert [e.type for e in events] == ["player_left", "host_changed"]


# ===== Gating =====

def test_unknown_action_type(table):
    with pytest.raises(ValidationError):
        table.do(Action(type="teleport", player_id="p1"))


def test_non_member_rejected(table):
    with pytest.raises(AuthorizationError):
        table.do(mark_ready("stranger"))


def test_action_outside_its_phase(table):
    with pytest.raises(StateConflictError):
        table.do(cast_vote("p2", "yes"))
    with pytest.raises(StateConflictError):
        table.do(start_game("p1"))


def test_only_active_player_rolls(table):
    with pytest.raises(AuthorizationError):
        table.do(roll_dice("p2", 3, "early_001"))


def test_roll_payload_validated(table):
    with pytest.raises(ValidationError):
        table.roll(7, "early_001")
    with pytest.raises(ValidationError):
        table.roll(3, "no_such_card")
    with pytest.raises(ValidationError):
        table.roll(3, "early_001", crisis_roll=100)


def test_input_state_never_mutated(table):
    before = table.state
    after, _ = apply_action(before, roll_dice("p1", 4, "early_001"), table.defs)
    assert before.phase == "waiting"
    assert before.dice_roll is None
    assert after.phase == "reviewing"


def test_rejected_action_leaves_state_untouched(table):
    table.roll(4, "early_001")
    before = table.state.to_dict()
    with pytest.raises(StateConflictError):
        table.do(mark_ready("p1"))
    assert table.state.to_dict() == before


def test_chat_is_relayed_without_state_change(table):
    before = table.state.to_dict()
    events = table.do(send_chat_message("p2", " hello "))
    assert events[0].type == "chat_message"
    assert events[0].payload["text"] == "hello"
    assert table.state.to_dict() == before
    with pytest.raises(ValidationError):
        table.do(send_chat_message("p2", "x" * 501))


# ===== A full turn =====

def test_full_turn(table):
    table.roll(4, "early_001")
    assert table.state.phase == "reviewing"
    assert table.state.dice_roll == 4
    assert table.state.current_card_id == "early_001"

    table.do(mark_ready("p2"))
    assert table.state.phase == "reviewing"
    table.do(mark_ready("p3"))
    assert table.state.phase == "deliberating"

    table.select("A")
    assert table.state.phase == "voting"
    assert table.state.selected_option_id == "A"

    table.do(cast_vote("p1", "yes", influence_spent=1))
    assert table.events[-1].type == "vote_cast"
    assert "choice" not in table.events[-1].payload
    table.do(cast_vote("p2", "no", influence_spent=1))
    table.do(cast_vote("p3", "yes"))

    state = table.state
    assert state.phase == "showingResults"
    entry = state.history[0]
    assert entry.outcome == "passed"
    assert (entry.yes_count, entry.no_count, entry.abstain_count) == (3, 2, 0)
    assert entry.margin == "3-2"
    # Movement uses the nation as it was before the option applied
    assert [p.position for p in state.players.values()] == [6, 0, 1]
    assert state.nation == NationState(stability=12, budget=5)
    assert state.players["p1"].influence == 4
    assert state.players["p2"].influence == 4
    assert state.last_turn_result["margin"] == "3-2"
    assert "turn_result" in table.event_types()
    assert "coalition-building" in entry.concepts_triggered
    assert "political-capital" in entry.concepts_triggered

    table.acknowledge()
    state = table.state
    assert state.phase == "waiting"
    assert state.turn_number == 2
    assert state.active_player_id == "p2"
    assert state.votes == {}
    assert state.current_card_id is None


def test_failed_vote_leaves_nation_alone(table):
    table.play_turn({"p1": "yes", "p2": "no", "p3": "abstain"}, option_id="A")
    # 1-1 tie fails
    entry = table.state.history[0]
    assert entry.outcome == "failed"
    assert entry.margin == "1-1"
    assert table.state.nation == NationState(stability=10, budget=8)
    assert table.state.players["p1"].position == 0


def test_active_player_does_not_review(table):
    table.roll(4, "early_001")
    with pytest.raises(StateConflictError):
        table.do(mark_ready("p1"))
    table.do(mark_ready("p2"))
    with pytest.raises(StateConflictError):
        table.do(mark_ready("p2"))


def test_select_option_rules(table):
    table.roll(4, "early_001")
    table.review()
    with pytest.raises(AuthorizationError):
        table.do(select_option("p2", "A"))
    with pytest.raises(ValidationError):
        table.select("D")


def test_vote_rules(table):
    table.roll(4, "early_001")
    table.review()
    table.select("B")
    with pytest.raises(ValidationError):
        table.do(cast_vote("p1", "maybe"))
    with pytest.raises(ValidationError):
        table.do(cast_vote("p1", "yes", influence_spent=-1))
    with pytest.raises(ResourceExhaustedError):
        table.do(cast_vote("p1", "yes", influence_spent=6))
    table.do(cast_vote("p1", "yes"))
    with pytest.raises(StateConflictError):
        table.do(cast_vote("p1", "no"))


def test_abstain_never_spends_influence(table):
    table.roll(4, "early_001")
    table.review()
    table.select("B")
    table.do(cast_vote("p2", "abstain", influence_spent=3))
    assert table.state.players["p2"].influence == 5
    assert table.state.votes["p2"].influence_spent == 0


def test_acknowledge_once(table):
    table.play_turn({"p1": "yes", "p2": "yes", "p3": "yes"})
    table.do(acknowledge_results("p2"))
    with pytest.raises(StateConflictError):
        table.do(acknowledge_results("p2"))


# ===== Terminal conditions =====

def test_collapse_ends_game(table):
    table.state.nation = NationState(stability=1, budget=8)
    # Keep the unrest crisis from taking over the roll
    table.state.last_crisis_turn = 1
    table.play_turn({"p1": "yes", "p2": "yes", "p3": "no"}, option_id="C")

    state = table.state
    assert state.status == "collapsed"
    assert state.phase == "collapsed"
    assert state.collapse_reason == "stability"
    assert state.winner_id is None
    with pytest.raises(StateConflictError):
        table.do(acknowledge_results("p1"))


def test_victory_ends_game(table):
    table.state.players["p1"].position = 33
    table.play_turn({"p1": ("yes", 1), "p2": "yes", "p3": "no"})
    state = table.state
    assert state.status == "finished"
    assert state.phase == "finished"
    assert state.winner_id == "p1"
    assert state.players["p1"].position == 35
    assert "game_finished" in table.event_types()


def test_victory_needs_influence(table):
    table.state.players["p1"].position = 33
    table.play_turn({"p1": ("yes", 3), "p2": "yes", "p3": "no"})
    # 2 influence left is under the victory floor
    assert table.state.status == "playing"
    assert table.state.players["p1"].position == 35


def test_collapse_beats_victory(table):
    table.state.players["p1"].position = 33
    table.state.nation = NationState(stability=1, budget=8)
    table.state.last_crisis_turn = 1
    # p1 reaches the track end on the same vote that drops stability to 0
    table.play_turn({"p1": "yes", "p2": "yes", "p3": "yes"}, option_id="C")
    assert table.state.status == "collapsed"
    assert table.state.winner_id is None


# ===== Timeouts =====

def test_roll_timeout_skips_turn(table):
    state = table.state
    table.do(timeout_expired("waiting", state.turn_number, state.phase_seq))
    state = table.state
    assert state.players["p1"].is_afk
    assert state.turn_number == 2
    assert state.active_player_id == "p2"
    assert "turn_skipped" in table.event_types()


def test_stale_timeout_rejected(table):
    old = timeout_expired("waiting", 1, table.state.phase_seq)
    table.roll(4, "early_001")
    with pytest.raises(StateConflictError):
        table.do(old)
    with pytest.raises(StateConflictError):
        table.do(timeout_expired("reviewing", 1, table.state.phase_seq - 1))


def test_review_timeout_marks_pending_ready(table):
    table.roll(4, "early_001")
    table.do(mark_ready("p2"))
    table.do(timeout_expired("reviewing", 1, table.state.phase_seq))
    assert table.state.phase == "deliberating"
    applied = table.events[0]
    assert applied.type == "timeout_applied"
    assert applied.payload["affected"] == ["p3"]


def test_vote_timeout_records_abstentions(table):
    table.roll(4, "early_001")
    table.review()
    table.select("A")
    table.do(cast_vote("p1", "yes"))
    table.do(timeout_expired("voting", 1, table.state.phase_seq))

    state = table.state
    entry = state.history[0]
    assert entry.outcome == "passed"
    assert entry.margin == "1-0"
    assert entry.abstain_count == 2
    assert state.players["p2"].is_afk
    assert state.players["p3"].is_afk
    assert not state.players["p1"].is_afk


def test_afk_cleared_by_next_action(table):
    table.do(timeout_expired("waiting", 1, table.state.phase_seq))
    assert table.state.players["p1"].is_afk
    table.roll(4, "early_001")
    table.do(mark_ready("p1"))
    assert not table.state.players["p1"].is_afk


def test_results_timeout_starts_next_turn(table):
    table.play_turn({"p1": "yes", "p2": "yes", "p3": "yes"})
    table.do(acknowledge_results("p1"))
    table.do(timeout_expired("showingResults", 1, table.state.phase_seq))
    assert table.state.turn_number == 2
    assert table.state.phase == "waiting"


# ===== Disconnection =====

def test_disconnect_unblocks_vote(table):
    table.roll(4, "early_001")
    table.review()
    table.select("A")
    table.do(cast_vote("p1", "yes"))
    table.do(cast_vote("p2", "no"))
    table.do(player_disconnected("p3"))

    state = table.state
    assert state.phase == "showingResults"
    assert state.history[0].margin == "1-1"
    assert "p3" not in state.pending_acks


def test_reconnect_restores_seat(table):
    table.do(player_disconnected("p2"))
    assert not table.state.players["p2"].is_connected
    with pytest.raises(StateConflictError):
        table.do(player_disconnected("p2"))
    events = table.do(join_room("p2", "Bob"))
    assert events[0].type == "player_reconnected"
    assert table.state.players["p2"].is_connected


def test_next_turn_skips_disconnected_player(table):
    table.play_turn({"p1": "yes", "p2": "yes", "p3": "yes"})
    table.do(player_disconnected("p2"))
    table.do(acknowledge_results("p1"))
    table.do(acknowledge_results("p3"))
    assert table.state.turn_number == 2
    assert table.state.active_player_id == "p3"


def test_reviewing_ignores_disconnected_players(table):
    table.do(player_disconnected("p3"))
    table.roll(4, "early_001")
    table.do(mark_ready("p2"))
    assert table.state.phase == "deliberating"
