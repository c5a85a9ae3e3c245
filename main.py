"""
Main entry point for the Coalition turn engine.
Demonstrates core functionality with a short scripted game driven
directly through the reducer.
"""

from coalition.engine.definitions import load_static_definitions
from coalition.engine.state import NationState
from coalition.engine.actions import (
    join_room,
    select_ideology,
    start_game,
    roll_dice,
    mark_ready,
    select_option,
    propose_deal,
    respond_deal,
    cast_vote,
    acknowledge_results,
    contribute_to_crisis,
)
from coalition.engine.reducer import apply_action
from coalition.engine.utils import initialize_room_state, print_room_state


def run(state, action, defs, quiet: bool = False):
    """Apply an action and print the events it produced."""
    state, events = apply_action(state, action, defs)
    if not quiet:
        for event in events:
            print(f"  -> {event.type}: {event.payload}")
    return state


def main():
    print("Coalition Turn Engine - scripted demo")
    print("=" * 60)

    defs = load_static_definitions()
    state = initialize_room_state("DEMO01")

    # ===== Lobby =====
    print("\n[LOBBY]")
    seats = [("ana", "Ana", "progressive"), ("ben", "Ben", "conservative"), ("cy", "Cy", "populist")]
    for player_id, name, ideology in seats:
        state = run(state, join_room(player_id, name), defs)
        state = run(state, select_ideology(player_id, ideology), defs)
    state = run(state, start_game("ana"), defs)
    print_room_state(state, defs)

    # ===== SCENARIO 1: A turn with a deal =====
    print("\n[SCENARIO 1: Deal, vote, resolution]")
    state = run(state, roll_dice("ana", 4, "early_001"), defs)
    state = run(state, propose_deal(
        "ana", "cy",
        initiator_commitment={"type": "token", "action": "give"},
        responder_commitment={"type": "vote", "choice": "yes"},
    ), defs)
    deal_id = state.deals[-1].id
    state = run(state, respond_deal("cy", deal_id, True), defs)
    state = run(state, mark_ready("ben"), defs)
    state = run(state, mark_ready("cy"), defs)

    print("\nAna proposes option A (progressive-aligned spending)")
    state = run(state, select_option("ana", "A"), defs)
    state = run(state, cast_vote("ana", "yes", influence_spent=1), defs)
    state = run(state, cast_vote("ben", "no", influence_spent=1), defs)
    state = run(state, cast_vote("cy", "yes"), defs)
    print_room_state(state, defs)

    for player_id in state.pending_acks[:]:
        state = run(state, acknowledge_results(player_id), defs, quiet=True)

    # ===== SCENARIO 2: A budget crisis =====
    print("\n[SCENARIO 2: Budget crisis]")
    state.nation = NationState(stability=state.nation.stability, budget=4)
    state = run(state, roll_dice("ben", 2, "early_002"), defs)
    print(f"Phase after roll: {state.phase}")
    state = run(state, contribute_to_crisis("ana", 3), defs)
    state = run(state, contribute_to_crisis("ben", 3), defs)
    state = run(state, contribute_to_crisis("cy", 2), defs)
    print_room_state(state, defs)

    print("\n[TURN HISTORY]")
    for entry in state.history:
        print(f"  Turn {entry.turn_number}: {entry.card_title} option {entry.option_id} "
              f"{entry.outcome} {entry.margin}; concepts: {', '.join(entry.concepts_triggered)}")


if __name__ == "__main__":
    main()
