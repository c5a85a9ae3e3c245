"""
Read-only queries over room state: per-viewer snapshots, turn history,
and dry-run action validation.

Influence is the one piece of per-viewer state: the owner sees the exact
value, everyone else sees a low/medium/high bucket. Both are derived here
from Player.influence at serialization time and never stored.
"""

from dataclasses import dataclass
from typing import Any

from coalition.engine import INFLUENCE_HIGH, INFLUENCE_LOW
from coalition.engine.actions import Action
from coalition.engine.definitions import Definitions
from coalition.engine.errors import EngineError
from coalition.engine.events import GameEvent, INFLUENCE_CHANGED
from coalition.engine.reducer import apply_action
from coalition.engine.state import (
    PHASE_CRISIS,
    PHASE_REVIEWING,
    PHASE_SHOWING_RESULTS,
    PHASE_VOTING,
    Player,
    RoomState,
)


@dataclass
class ValidationResult:
    """Result of action validation."""
    valid: bool
    error: str | None = None
    code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "error": self.error, "code": self.code}


# ===== Action Validation =====

def validate_action(state: RoomState, action: Action, defs: Definitions) -> ValidationResult:
    """
    Validate an action without applying it.
    Runs the reducer against a copy, so every rule is checked exactly as it
    would be when the action is submitted.
    """
    try:
        apply_action(state, action, defs)
    except EngineError as e:
        return ValidationResult(False, e.message, e.code)
    return ValidationResult(True)


# ===== Projections =====

def influence_level(influence: int) -> str:
    if influence >= INFLUENCE_HIGH:
        return "high"
    if influence <= INFLUENCE_LOW:
        return "low"
    return "medium"


def player_payload(state: RoomState, player: Player, viewer_id: str | None) -> dict[str, Any]:
    """One player as seen by viewer_id: exact influence for the owner only."""
    shown_influence = player.influence
    vote = state.votes.get(player.id)
    if state.phase == PHASE_VOTING and vote is not None and player.id != viewer_id:
        # Bucket from before the vote so a spend is not visible until the reveal
        shown_influence += vote.influence_spent
    out = {
        "id": player.id,
        "display_name": player.display_name,
        "seat": player.seat,
        "ideology": player.ideology,
        "position": player.position,
        "own_tokens": player.own_tokens,
        "influence_level": influence_level(shown_influence),
        "is_connected": player.is_connected,
        "is_afk": player.is_afk,
        "is_host": player.id == state.host_id,
        "is_active": player.id == state.active_player_id,
    }
    if player.id == viewer_id:
        out["influence"] = player.influence
    return out


def pending_player_ids(state: RoomState) -> list[str]:
    """Players the current phase is waiting on."""
    connected = state.connected_player_ids()
    if state.phase == PHASE_REVIEWING:
        return [
            pid for pid in connected
            if pid != state.active_player_id and pid not in state.ready_players
        ]
    if state.phase == PHASE_VOTING:
        return [pid for pid in connected if pid not in state.votes]
    if state.phase == PHASE_SHOWING_RESULTS:
        return list(state.pending_acks)
    if state.phase == PHASE_CRISIS and state.active_crisis:
        return [pid for pid in connected if pid not in state.active_crisis.ready]
    return []


def room_state_payload(
    state: RoomState,
    viewer_id: str | None = None,
    defs: Definitions | None = None,
) -> dict[str, Any]:
    """
    Full room snapshot for one viewer. Clients replace their local state
    wholesale with this on every broadcast, including after a reconnect.

    Vote choices are never included while voting is open; only who has
    voted, plus the viewer's own vote.
    """
    card = None
    if state.current_card_id:
        card_def = defs.cards.get(state.current_card_id) if defs else None
        card = card_def.to_dict() if card_def else {"id": state.current_card_id}

    crisis = None
    if state.active_crisis:
        crisis = state.active_crisis.to_dict()
        crisis_def = defs.crises.get(state.active_crisis.crisis_id) if defs else None
        if crisis_def:
            crisis.update(crisis_def.to_dict())

    my_vote = state.votes.get(viewer_id) if viewer_id else None

    return {
        "room_id": state.room_id,
        "status": state.status,
        "phase": state.phase,
        "phase_seq": state.phase_seq,
        "turn_number": state.turn_number,
        "active_player_id": state.active_player_id,
        "host_id": state.host_id,
        "viewer_id": viewer_id,
        "players": [player_payload(state, state.players[pid], viewer_id) for pid in state.seat_order()],
        "nation": state.nation.to_dict(),
        "current_card": card,
        "selected_option_id": state.selected_option_id,
        "dice_roll": state.dice_roll,
        "modified_roll": state.modified_roll,
        "voted": [pid for pid in state.seat_order() if pid in state.votes],
        "my_vote": my_vote.to_dict() if my_vote else None,
        "pending_players": pending_player_ids(state),
        "deals": [d.to_dict() for d in state.open_deals()],
        "active_crisis": crisis,
        "last_turn_result": state.last_turn_result,
        "winner_id": state.winner_id,
        "collapse_reason": state.collapse_reason,
        "settings": {
            "track_length": state.settings.track_length,
            "min_players": state.settings.min_players,
            "max_players": state.settings.max_players,
        },
    }


def turn_history_payload(state: RoomState) -> list[dict[str, Any]]:
    return [entry.to_dict() for entry in state.history]


def deal_log_payload(state: RoomState) -> list[dict[str, Any]]:
    """Every deal still on record, terminal ones included."""
    return [d.to_dict() for d in state.deals]


# Influence change reasons that are private to the player they concern.
# A vote spend is the vote weight and stays hidden until the reveal.
PRIVATE_INFLUENCE_REASONS = ("vote",)


def event_payload(event: GameEvent, viewer_id: str | None) -> dict[str, Any]:
    """Event as seen by viewer_id. Influence amounts go to the owner only."""
    if event.type == INFLUENCE_CHANGED and event.payload.get("player_id") != viewer_id:
        payload = {
            k: v for k, v in event.payload.items()
            if k not in ("old_value", "new_value", "change")
        }
        return {"type": event.type, "payload": payload}
    return event.to_dict()


def is_visible_to(event: GameEvent, viewer_id: str | None) -> bool:
    if event.type == INFLUENCE_CHANGED and event.payload.get("reason") in PRIVATE_INFLUENCE_REASONS:
        return event.payload.get("player_id") == viewer_id
    return True


def visible_events(events: list[GameEvent], viewer_id: str | None) -> list[dict[str, Any]]:
    """Events for one viewer: private ones dropped, the rest filtered by event_payload."""
    return [event_payload(e, viewer_id) for e in events if is_visible_to(e, viewer_id)]
