"""
Nation health and victory: bounded stability/budget updates, movement
modifiers, the collapse check and the victory check.
"""

from coalition.engine import (
    BUDGET_COLLAPSE,
    BUDGET_HIGH,
    BUDGET_LOW,
    BUDGET_MAX,
    BUDGET_MIN,
    STABILITY_COLLAPSE,
    STABILITY_HIGH,
    STABILITY_LOW,
    STABILITY_MAX,
    STABILITY_MIN,
    VICTORY_INFLUENCE,
)
from coalition.engine.state import NationState, Player

COLLAPSE_STABILITY = "stability"
COLLAPSE_BUDGET = "budget"


def apply_nation_changes(nation: NationState, stability_change: int, budget_change: int) -> NationState:
    """Return a new NationState with the deltas applied, clamped to the nation bounds."""
    return NationState(
        stability=max(STABILITY_MIN, min(STABILITY_MAX, nation.stability + stability_change)),
        budget=max(BUDGET_MIN, min(BUDGET_MAX, nation.budget + budget_change)),
    )


def check_collapse(nation: NationState) -> str | None:
    """
    Return the collapse reason, or None.
    Stability is evaluated first, so a simultaneous breach reports "stability".
    """
    if nation.stability <= STABILITY_COLLAPSE:
        return COLLAPSE_STABILITY
    if nation.budget <= BUDGET_COLLAPSE:
        return COLLAPSE_BUDGET
    return None


def roll_modifier(nation: NationState) -> int:
    """+1 to the active player's roll on a budget surplus, -1 on a deficit."""
    if nation.budget >= BUDGET_HIGH:
        return 1
    if nation.budget <= BUDGET_LOW:
        return -1
    return 0


def modified_roll(roll: int, nation: NationState) -> int:
    return max(1, roll + roll_modifier(nation))


def nation_modifier(nation: NationState) -> int:
    """Movement modifier applied to every player: +1 when stable, -1 when unstable."""
    if nation.stability >= STABILITY_HIGH:
        return 1
    if nation.stability <= STABILITY_LOW:
        return -1
    return 0


def check_victory(players: list[Player], track_length: int) -> str | None:
    """
    Return the winning player id, or None.
    A winner has reached the end of the track holding at least VICTORY_INFLUENCE.
    Several at once: highest influence wins, then lowest seat.
    """
    finishers = [
        p for p in players
        if p.position >= track_length and p.influence >= VICTORY_INFLUENCE
    ]
    if not finishers:
        return None
    finishers.sort(key=lambda p: (-p.influence, p.seat))
    return finishers[0].id
