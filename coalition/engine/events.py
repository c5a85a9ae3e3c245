"""
Game events for clients and logging.
Events describe what happened during action processing. The session
broadcasts them alongside the personalized room snapshot.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameEvent":
        return cls(type=data["type"], payload=data["payload"])


# ===== Event Type Constants =====

# Lobby events
PLAYER_JOINED = "player_joined"
PLAYER_RECONNECTED = "player_reconnected"
PLAYER_DISCONNECTED = "player_disconnected"
PLAYER_LEFT = "player_left"
HOST_CHANGED = "host_changed"
IDEOLOGY_SELECTED = "ideology_selected"
GAME_STARTED = "game_started"

# Phase/Turn events
PHASE_CHANGED = "phase_changed"
TURN_STARTED = "turn_started"
TURN_SKIPPED = "turn_skipped"
DICE_ROLLED = "dice_rolled"
CARD_DRAWN = "card_drawn"
PLAYER_READY = "player_ready"
OPTION_SELECTED = "option_selected"
RESULTS_ACKNOWLEDGED = "results_acknowledged"
PLAYER_AFK = "player_afk"
TIMEOUT_APPLIED = "timeout_applied"

# Voting events
VOTE_CAST = "vote_cast"
TURN_RESULT = "turn_result"

# Resource events
INFLUENCE_CHANGED = "influence_changed"
NATION_CHANGED = "nation_changed"
TOKENS_TRANSFERRED = "tokens_transferred"

# Deal events
DEAL_PROPOSED = "deal_proposed"
DEAL_ACCEPTED = "deal_accepted"
DEAL_REJECTED = "deal_rejected"
DEAL_WITHDRAWN = "deal_withdrawn"
DEAL_FULFILLED = "deal_fulfilled"
DEAL_BREACHED = "deal_breached"

# Crisis events
CRISIS_STARTED = "crisis_started"
CRISIS_CONTRIBUTION = "crisis_contribution"
CRISIS_ROUND_CLOSED = "crisis_round_closed"
CRISIS_RESOLVED = "crisis_resolved"

# Chat
CHAT_MESSAGE = "chat_message"

# Endings
GAME_FINISHED = "game_finished"
NATION_COLLAPSED = "nation_collapsed"
SESSION_FAILED = "session_failed"


# ===== Event Factory Functions =====

def player_joined(player_id: str, display_name: str, seat: int) -> GameEvent:
    return GameEvent(PLAYER_JOINED, {
        "player_id": player_id,
        "display_name": display_name,
        "seat": seat,
    })


def player_reconnected(player_id: str) -> GameEvent:
    return GameEvent(PLAYER_RECONNECTED, {"player_id": player_id})


def player_disconnected(player_id: str) -> GameEvent:
    return GameEvent(PLAYER_DISCONNECTED, {"player_id": player_id})


def player_left(player_id: str) -> GameEvent:
    """Lobby only: the seat is freed."""
    return GameEvent(PLAYER_LEFT, {"player_id": player_id})


def host_changed(old_host: str | None, new_host: str | None) -> GameEvent:
    return GameEvent(HOST_CHANGED, {"old_host": old_host, "new_host": new_host})


def ideology_selected(player_id: str, ideology: str) -> GameEvent:
    return GameEvent(IDEOLOGY_SELECTED, {"player_id": player_id, "ideology": ideology})


def game_started(turn_order: list[str]) -> GameEvent:
    return GameEvent(GAME_STARTED, {"turn_order": turn_order})


def phase_changed(old_phase: str, new_phase: str, turn_number: int) -> GameEvent:
    return GameEvent(PHASE_CHANGED, {
        "old_phase": old_phase,
        "new_phase": new_phase,
        "turn_number": turn_number,
    })


def turn_started(turn_number: int, player_id: str) -> GameEvent:
    return GameEvent(TURN_STARTED, {
        "turn_number": turn_number,
        "player_id": player_id,
    })


def turn_skipped(turn_number: int, player_id: str, reason: str) -> GameEvent:
    return GameEvent(TURN_SKIPPED, {
        "turn_number": turn_number,
        "player_id": player_id,
        "reason": reason,
    })


def dice_rolled(player_id: str, roll: int, roll_modifier: int, modified_roll: int) -> GameEvent:
    return GameEvent(DICE_ROLLED, {
        "player_id": player_id,
        "roll": roll,
        "roll_modifier": roll_modifier,
        "modified_roll": modified_roll,
    })


def card_drawn(card_id: str, zone: str, title: str) -> GameEvent:
    return GameEvent(CARD_DRAWN, {"card_id": card_id, "zone": zone, "title": title})


def player_ready(player_id: str, phase: str) -> GameEvent:
    return GameEvent(PLAYER_READY, {"player_id": player_id, "phase": phase})


def option_selected(player_id: str, option_id: str, option_name: str) -> GameEvent:
    return GameEvent(OPTION_SELECTED, {
        "player_id": player_id,
        "option_id": option_id,
        "option_name": option_name,
    })


def results_acknowledged(player_id: str) -> GameEvent:
    return GameEvent(RESULTS_ACKNOWLEDGED, {"player_id": player_id})


def player_afk(player_id: str) -> GameEvent:
    return GameEvent(PLAYER_AFK, {"player_id": player_id})


def timeout_applied(phase: str, turn_number: int, affected: list[str]) -> GameEvent:
    """affected: players the timeout acted on behalf of."""
    return GameEvent(TIMEOUT_APPLIED, {
        "phase": phase,
        "turn_number": turn_number,
        "affected": affected,
    })


def vote_cast(player_id: str) -> GameEvent:
    """Only who voted; the choice stays hidden until the reveal."""
    return GameEvent(VOTE_CAST, {"player_id": player_id})


def turn_result(result: dict[str, Any]) -> GameEvent:
    """Vote breakdown, movements and nation deltas for one resolved turn."""
    return GameEvent(TURN_RESULT, result)


def influence_changed(
    player_id: str,
    old_value: int,
    new_value: int,
    reason: str,
) -> GameEvent:
    return GameEvent(INFLUENCE_CHANGED, {
        "player_id": player_id,
        "old_value": old_value,
        "new_value": new_value,
        "change": new_value - old_value,
        "reason": reason,
    })


def nation_changed(
    stability_before: int,
    budget_before: int,
    stability_after: int,
    budget_after: int,
    reason: str,
) -> GameEvent:
    return GameEvent(NATION_CHANGED, {
        "stability_before": stability_before,
        "stability_after": stability_after,
        "budget_before": budget_before,
        "budget_after": budget_after,
        "reason": reason,
    })


def tokens_transferred(from_player: str, to_player: str, deal_id: str) -> GameEvent:
    return GameEvent(TOKENS_TRANSFERRED, {
        "from_player": from_player,
        "to_player": to_player,
        "amount": 1,
        "deal_id": deal_id,
    })


def deal_proposed(deal: dict[str, Any]) -> GameEvent:
    return GameEvent(DEAL_PROPOSED, {"deal": deal})


def deal_accepted(deal: dict[str, Any]) -> GameEvent:
    return GameEvent(DEAL_ACCEPTED, {"deal": deal})


def deal_rejected(deal_id: str, responder_id: str) -> GameEvent:
    return GameEvent(DEAL_REJECTED, {"deal_id": deal_id, "responder_id": responder_id})


def deal_withdrawn(deal_id: str, reason: str) -> GameEvent:
    return GameEvent(DEAL_WITHDRAWN, {"deal_id": deal_id, "reason": reason})


def deal_fulfilled(deal_id: str, turn_number: int) -> GameEvent:
    return GameEvent(DEAL_FULFILLED, {"deal_id": deal_id, "turn_number": turn_number})


def deal_breached(
    deal_id: str,
    breaker_id: str,
    victim_id: str,
    committed_choice: str | None,
    actual_choice: str | None,
    breaker_penalty: int,
    victim_compensation: int,
    turn_number: int,
) -> GameEvent:
    return GameEvent(DEAL_BREACHED, {
        "deal_id": deal_id,
        "breaker_id": breaker_id,
        "victim_id": victim_id,
        "committed_choice": committed_choice,
        "actual_choice": actual_choice,
        "breaker_penalty": breaker_penalty,
        "victim_compensation": victim_compensation,
        "turn_number": turn_number,
    })


def crisis_started(crisis: dict[str, Any], turns_remaining: int) -> GameEvent:
    return GameEvent(CRISIS_STARTED, {"crisis": crisis, "turns_remaining": turns_remaining})


def crisis_contribution(player_id: str, amount: int, player_total: int, pool_total: int) -> GameEvent:
    return GameEvent(CRISIS_CONTRIBUTION, {
        "player_id": player_id,
        "amount": amount,
        "player_total": player_total,
        "pool_total": pool_total,
    })


def crisis_round_closed(crisis_id: str, turns_remaining: int) -> GameEvent:
    return GameEvent(CRISIS_ROUND_CLOSED, {
        "crisis_id": crisis_id,
        "turns_remaining": turns_remaining,
    })


def crisis_resolved(resolution: dict[str, Any]) -> GameEvent:
    return GameEvent(CRISIS_RESOLVED, resolution)


def chat_message(player_id: str, display_name: str, text: str, timestamp: float) -> GameEvent:
    return GameEvent(CHAT_MESSAGE, {
        "player_id": player_id,
        "display_name": display_name,
        "text": text,
        "timestamp": timestamp,
    })


def game_finished(winner_id: str, position: int, influence: int) -> GameEvent:
    return GameEvent(GAME_FINISHED, {
        "winner_id": winner_id,
        "position": position,
        "influence": influence,
    })


def nation_collapsed(reason: str, stability: int, budget: int) -> GameEvent:
    return GameEvent(NATION_COLLAPSED, {
        "reason": reason,
        "stability": stability,
        "budget": budget,
    })


def session_failed(room_id: str) -> GameEvent:
    """Generic failure broadcast when a session halts; details stay in the server log."""
    return GameEvent(SESSION_FAILED, {
        "room_id": room_id,
        "message": "The game session encountered an internal error and has stopped.",
    })
