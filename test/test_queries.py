"""
Per-viewer snapshots, event filtering, history and dry-run validation.
"""

from coalition.engine.actions import cast_vote, mark_ready
from coalition.engine.events import influence_changed, vote_cast
from coalition.engine.queries import (
    deal_log_payload,
    event_payload,
    influence_level,
    pending_player_ids,
    room_state_payload,
    turn_history_payload,
    validate_action,
    visible_events,
)


def test_influence_buckets():
    assert influence_level(0) == "low"
    assert influence_level(2) == "low"
    assert influence_level(3) == "medium"
    assert influence_level(7) == "medium"
    assert influence_level(8) == "high"
    assert influence_level(20) == "high"


def test_exact_influence_only_for_owner(table):
    table.state.players["p2"].influence = 9
    payload = room_state_payload(table.state, "p1", table.defs)
    players = {p["id"]: p for p in payload["players"]}
    assert players["p1"]["influence"] == 5
    assert "influence" not in players["p2"]
    assert players["p2"]["influence_level"] == "high"
    assert players["p3"]["influence_level"] == "medium"


def test_spectator_sees_no_exact_influence(table):
    payload = room_state_payload(table.state, None, table.defs)
    assert all("influence" not in p for p in payload["players"])


def test_vote_choices_hidden_while_voting(table):
    table.roll(4, "early_001")
    table.review()
    table.select("A")
    table.do(cast_vote("p2", "no"))

    mine = room_state_payload(table.state, "p2", table.defs)
    theirs = room_state_payload(table.state, "p1", table.defs)
    assert mine["my_vote"]["choice"] == "no"
    assert theirs["my_vote"] is None
    assert theirs["voted"] == ["p2"]
    assert theirs["pending_players"] == ["p1", "p3"]
    assert "votes" not in theirs


def test_snapshot_includes_card_content(table):
    table.roll(4, "early_001")
    payload = room_state_payload(table.state, "p1", table.defs)
    assert payload["current_card"]["id"] == "early_001"
    assert [o["id"] for o in payload["current_card"]["options"]] == ["A", "B", "C"]
    assert payload["pending_players"] == ["p2", "p3"]


def test_influence_event_filtered_for_others():
    event = influence_changed("p1", 5, 3, "vote")
    own = event_payload(event, "p1")
    other = event_payload(event, "p2")
    assert own["payload"]["new_value"] == 3
    assert own["payload"]["change"] == -2
    assert other["payload"] == {"player_id": "p1", "reason": "vote"}
    # Other events pass through untouched
    assert event_payload(vote_cast("p1"), "p2") == vote_cast("p1").to_dict()


def test_vote_spend_hidden_from_others_until_reveal(table):
    table.roll(4, "early_001")
    table.review()
    table.select("A")
    table.do(cast_vote("p2", "no", influence_spent=3))
    assert table.state.phase == "voting"

    own = visible_events(table.events, "p2")
    assert own[0] == {
        "type": "influence_changed",
        "payload": {"player_id": "p2", "old_value": 5, "new_value": 2, "change": -3, "reason": "vote"},
    }
    other = visible_events(table.events, "p1")
    assert [e["type"] for e in other] == ["vote_cast"]
    assert visible_events(table.events, None) == other

    # Bucket stays at its pre-vote level for everyone else
    players = {p["id"]: p for p in room_state_payload(table.state, "p1", table.defs)["players"]}
    assert players["p2"]["influence_level"] == "medium"
    mine = {p["id"]: p for p in room_state_payload(table.state, "p2", table.defs)["players"]}
    assert mine["p2"]["influence"] == 2
    assert mine["p2"]["influence_level"] == "low"


def test_history_and_deal_log(table):
    table.play_turn({"p1": "yes", "p2": "no", "p3": "yes"})
    history = turn_history_payload(table.state)
    assert len(history) == 1
    assert history[0]["proposal"]["card_id"] == "early_001"
    assert history[0]["nation_changes"]["budget_delta"] == -3
    assert [v["choice"] for v in history[0]["votes"]] == ["yes", "no", "yes"]
    assert deal_log_payload(table.state) == []


def test_validate_action_does_not_apply(table):
    result = validate_action(table.state, mark_ready("p2"), table.defs)
    assert not result.valid
    assert result.code == "state_conflict"

    table.roll(4, "early_001")
    result = validate_action(table.state, mark_ready("p2"), table.defs)
    assert result.valid
    assert result.to_dict() == {"valid": True, "error": None, "code": None}
    assert pending_player_ids(table.state) == ["p2", "p3"]
