"""
Crisis resolver.
A crisis suspends normal turns. Players pool influence toward a threshold;
each closed round ticks turns_remaining down. Reaching the threshold
resolves as success on the spot, running out of rounds resolves as failure.
Exactly one effect is applied, then the crisis is cleared.
"""

from typing import Any

from coalition.engine.concepts import detect_crisis_concepts
from coalition.engine.definitions import CrisisDefinition, Definitions
from coalition.engine.errors import ResourceExhaustedError, ValidationError
from coalition.engine.events import (
    GameEvent,
    crisis_contribution,
    crisis_round_closed,
    crisis_started,
    influence_changed,
    nation_changed,
)
from coalition.engine.nation import apply_nation_changes
from coalition.engine.state import ActiveCrisis, RoomState

TRIGGER_STABILITY = "stability_threshold"
TRIGGER_BUDGET = "budget_threshold"
TRIGGER_RANDOM = "random"


def crisis_on_cooldown(state: RoomState) -> bool:
    if state.last_crisis_turn is None:
        return False
    return state.turn_number - state.last_crisis_turn < state.settings.crisis_cooldown_turns


def find_triggered_crisis(
    state: RoomState,
    defs: Definitions,
    crisis_roll: int | None,
) -> CrisisDefinition | None:
    """
    First crisis in definition order whose trigger matches, or None.
    Threshold triggers fire at or below their value; random triggers need
    the game to be past the minimum turn and crisis_roll (0-99) under the value.
    """
    if state.active_crisis is not None or crisis_on_cooldown(state):
        return None
    for crisis in defs.crises.values():
        if crisis.trigger_type == TRIGGER_STABILITY:
            if state.nation.stability <= crisis.trigger_value:
                return crisis
        elif crisis.trigger_type == TRIGGER_BUDGET:
            if state.nation.budget <= crisis.trigger_value:
                return crisis
        elif crisis.trigger_type == TRIGGER_RANDOM:
            if (
                crisis_roll is not None
                and state.turn_number >= state.settings.random_crisis_min_turn
                and crisis_roll < crisis.trigger_value
            ):
                return crisis
    return None


def start_crisis(state: RoomState, crisis: CrisisDefinition) -> list[GameEvent]:
    state.active_crisis = ActiveCrisis(
        crisis_id=crisis.id,
        turns_remaining=state.settings.crisis_duration,
        started_turn=state.turn_number,
    )
    state.last_crisis_turn = state.turn_number
    return [crisis_started(crisis.to_dict(), state.active_crisis.turns_remaining)]


def contribute(
    state: RoomState,
    player_id: str,
    amount: Any,
    crisis: CrisisDefinition,
) -> list[GameEvent]:
    """
    Move influence from a player into the crisis pool.
    Rejected (never clamped) when it exceeds the player's influence or would
    take their running total past the per-player maximum.
    """
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValidationError("Contribution must be a positive integer")
    active = state.active_crisis
    player = state.players[player_id]
    if amount > player.influence:
        raise ResourceExhaustedError(
            f"Insufficient influence: have {player.influence}, need {amount}")
    existing = active.contributions.get(player_id, 0)
    if existing + amount > crisis.max_contribution_per_player:
        raise ValidationError(
            f"Contribution would exceed the per-player maximum of "
            f"{crisis.max_contribution_per_player} (already contributed {existing})")

    old_influence = player.influence
    player.influence -= amount
    active.contributions[player_id] = existing + amount
    return [
        influence_changed(player_id, old_influence, player.influence, "crisis_contribution"),
        crisis_contribution(player_id, amount, active.contributions[player_id], active.total_contribution),
    ]


def threshold_met(state: RoomState, crisis: CrisisDefinition) -> bool:
    return state.active_crisis.total_contribution >= crisis.contribution_threshold


def close_round(state: RoomState) -> list[GameEvent]:
    """One crisis tick: clears round readiness and decrements turns_remaining."""
    active = state.active_crisis
    active.turns_remaining -= 1
    active.ready = []
    return [crisis_round_closed(active.crisis_id, active.turns_remaining)]


def resolve_crisis(state: RoomState, crisis: CrisisDefinition) -> tuple[dict[str, Any], list[GameEvent]]:
    """
    Apply the success or failure effect once and clear the crisis.
    Returns the crisis resolution payload and the nation event.
    The caller runs the collapse check.
    """
    active = state.active_crisis
    success = active.total_contribution >= crisis.contribution_threshold
    effect = crisis.success_effect if success else crisis.failure_effect

    before = state.nation
    state.nation = apply_nation_changes(before, effect.stability_change, effect.budget_change)
    state.active_crisis = None

    resolution = {
        "crisis_id": crisis.id,
        "name": crisis.name,
        "success": success,
        "total_contribution": active.total_contribution,
        "contribution_threshold": crisis.contribution_threshold,
        "contributions": dict(active.contributions),
        "turns_remaining": active.turns_remaining,
        "effect": effect.to_dict(),
        "nation_before": before.to_dict(),
        "nation_after": state.nation.to_dict(),
        "concepts_triggered": detect_crisis_concepts(success),
    }
    event = nation_changed(
        before.stability, before.budget,
        state.nation.stability, state.nation.budget,
        "crisis_success" if success else "crisis_failure",
    )
    return resolution, [event]
