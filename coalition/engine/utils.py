"""
Utility functions for the turn engine.
"""

import random

from coalition.config import GameSettings, DEFAULT_SETTINGS
from coalition.engine import BOARD_ZONES, DICE_SIDES, LATE_TERM_ZONE
from coalition.engine.definitions import Definitions
from coalition.engine.events import GameEvent, influence_changed
from coalition.engine.state import RoomState, NationState


def initialize_room_state(room_id: str, settings: GameSettings | None = None) -> RoomState:
    """
    Create an empty lobby for a room.
    Nation values are set from settings; player resources are dealt at start_game.
    """
    settings = settings or DEFAULT_SETTINGS
    return RoomState(
        room_id=room_id,
        nation=NationState(
            stability=settings.starting_stability,
            budget=settings.starting_budget,
        ),
        settings=settings,
    )


def zone_for_position(position: int) -> str:
    """Board zone containing a track position: early 0-8, mid 9-20, crisis 21-27, late 28+."""
    for zone, last_space in BOARD_ZONES:
        if position <= last_space:
            return zone
    return LATE_TERM_ZONE


def current_zone(state: RoomState) -> str:
    """Cards come from the zone of the most advanced player."""
    lead = max((p.position for p in state.players.values()), default=0)
    return zone_for_position(lead)


def draw_card_id(state: RoomState, defs: Definitions, rng: random.Random) -> str:
    """
    Pick the next card for the current zone.
    Cards already drawn this game are skipped until the zone deck runs out,
    after which the whole zone deck is eligible again.
    """
    deck = defs.cards_for_zone(current_zone(state))
    if not deck:
        deck = list(defs.cards.values())
    if not deck:
        raise ValueError("No decision cards loaded")
    fresh = [c for c in deck if c.id not in state.drawn_card_ids]
    return rng.choice(fresh or deck).id


def roll_die(rng: random.Random) -> int:
    return rng.randint(1, DICE_SIDES)


def roll_percent(rng: random.Random) -> int:
    """0-99 roll for random crisis triggers."""
    return rng.randrange(100)


def adjust_influence(
    state: RoomState,
    player_id: str,
    delta: int,
    reason: str,
) -> GameEvent:
    """Apply an influence delta (floored at 0) to a player and return the event."""
    player = state.players[player_id]
    old_value = player.influence
    player.influence = max(0, old_value + delta)
    return influence_changed(player_id, old_value, player.influence, reason)


def print_room_state(state: RoomState, defs: Definitions | None = None):
    """
    Pretty-print the current room state.

    Args:
        state: Current room state
        defs: Optional definitions, used to show the card title and chosen option
    """
    print(f"\n{'='*60}")
    print(
        f"Turn {state.turn_number} | Active: {state.active_player_id} | "
        f"Phase: {state.phase} | Status: {state.status}")
    print(f"{'='*60}")
    print(f"Nation: stability={state.nation.stability}, budget={state.nation.budget}")

    if state.current_card_id:
        card = defs.cards.get(state.current_card_id) if defs else None
        title = card.title if card else state.current_card_id
        print(f"Card: {title}" + (f" (option {state.selected_option_id})" if state.selected_option_id else ""))

    print(f"\n{'Players':.<40}")
    for pid in state.seat_order():
        p = state.players[pid]
        flags = []
        if not p.is_connected:
            flags.append("disconnected")
        if p.is_afk:
            flags.append("afk")
        flag_str = f" [{', '.join(flags)}]" if flags else ""
        print(f"  {p.display_name} ({p.ideology}): pos={p.position}, "
              f"influence={p.influence}, tokens={p.own_tokens}{flag_str}")

    open_deals = state.open_deals()
    if open_deals:
        print(f"\n{'Deals':.<40}")
        for deal in open_deals:
            print(f"  {deal.id}: {deal.initiator_id} <-> {deal.responder_id} ({deal.status}, {deal.scope})")

    if state.active_crisis:
        crisis = state.active_crisis
        print(f"\nCrisis {crisis.crisis_id}: pool={crisis.total_contribution}, "
              f"turns_remaining={crisis.turns_remaining}")

    if state.winner_id:
        print(f"\nWinner: {state.winner_id}")
    if state.collapse_reason:
        print(f"\nCollapsed: {state.collapse_reason}")
    print()
