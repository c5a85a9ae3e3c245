"""
Action definitions for the turn engine.
Actions are immutable, deterministic player (or system) intents.
Anything random (dice, card draw, crisis percent roll) is decided by the
session before the action is built and travels inside the payload.
"""

from dataclasses import dataclass, field


# Player-originated intents
JOIN_ROOM = "join_room"
SELECT_IDEOLOGY = "select_ideology"
START_GAME = "start_game"
ROLL_DICE = "roll_dice"
MARK_READY = "mark_ready"
SELECT_OPTION = "select_option"
PROPOSE_DEAL = "propose_deal"
RESPOND_DEAL = "respond_deal"
CAST_VOTE = "cast_vote"
CONTRIBUTE_TO_CRISIS = "contribute_to_crisis"
ACKNOWLEDGE_RESULTS = "acknowledge_results"
SEND_CHAT_MESSAGE = "send_chat_message"

# System intents (transport and scheduler)
PLAYER_DISCONNECTED = "player_disconnected"
TIMEOUT_EXPIRED = "timeout_expired"

SYSTEM_ACTIONS = (PLAYER_DISCONNECTED, TIMEOUT_EXPIRED)


@dataclass(frozen=True)
class Action:
    """Base action class. All actions have a type, acting player, and payload."""
    type: str
    player_id: str | None  # None for timeout_expired
    payload: dict = field(default_factory=dict)
    timestamp: float = 0.0  # receipt time at the transport boundary


def join_room(player_id: str, display_name: str) -> Action:
    """Join (or rejoin) a room. A known player_id is treated as a reconnection."""
    return Action(type=JOIN_ROOM, player_id=player_id, payload={"display_name": display_name})


def select_ideology(player_id: str, ideology: str) -> Action:
    return Action(type=SELECT_IDEOLOGY, player_id=player_id, payload={"ideology": ideology})


def start_game(player_id: str) -> Action:
    """Host only."""
    return Action(type=START_GAME, player_id=player_id)


def roll_dice(
    player_id: str,
    roll: int,
    card_id: str,
    crisis_roll: int | None = None,
) -> Action:
    """
    Roll at the top of a turn. roll is 1..DICE_SIDES, card_id the card to draw
    for the zone, crisis_roll a 0..99 percent roll for random crisis triggers.

    Example: roll_dice("p1", 4, "economic-stimulus", crisis_roll=57)
    """
    payload = {"roll": roll, "card_id": card_id}
    if crisis_roll is not None:
        payload["crisis_roll"] = crisis_roll
    return Action(type=ROLL_DICE, player_id=player_id, payload=payload)


def mark_ready(player_id: str) -> Action:
    """Done reviewing the card, or done with the current crisis round."""
    return Action(type=MARK_READY, player_id=player_id)


def select_option(player_id: str, option_id: str) -> Action:
    return Action(type=SELECT_OPTION, player_id=player_id, payload={"option_id": option_id})


def propose_deal(
    player_id: str,
    responder_id: str,
    initiator_commitment: dict,
    responder_commitment: dict,
    scope: str = "this_vote",
    scope_value: int | None = None,
) -> Action:
    """
    Propose a deal to another player.
    Commitments are {"type": "vote", "choice": "yes"|"no"} or {"type": "token", "action": "give"}.

    Example: propose_deal("p1", "p2", {"type": "token", "action": "give"},
                          {"type": "vote", "choice": "yes"})
    """
    payload = {
        "responder_id": responder_id,
        "initiator_commitment": initiator_commitment,
        "responder_commitment": responder_commitment,
        "scope": scope,
    }
    if scope_value is not None:
        payload["scope_value"] = scope_value
    return Action(type=PROPOSE_DEAL, player_id=player_id, payload=payload)


def respond_deal(player_id: str, deal_id: str, accept: bool) -> Action:
    return Action(type=RESPOND_DEAL, player_id=player_id, payload={"deal_id": deal_id, "accept": accept})


def cast_vote(player_id: str, choice: str, influence_spent: int = 0) -> Action:
    return Action(
        type=CAST_VOTE,
        player_id=player_id,
        payload={"choice": choice, "influence_spent": influence_spent},
    )


def contribute_to_crisis(player_id: str, amount: int) -> Action:
    return Action(type=CONTRIBUTE_TO_CRISIS, player_id=player_id, payload={"amount": amount})


def acknowledge_results(player_id: str) -> Action:
    return Action(type=ACKNOWLEDGE_RESULTS, player_id=player_id)


def send_chat_message(player_id: str, text: str) -> Action:
    return Action(type=SEND_CHAT_MESSAGE, player_id=player_id, payload={"text": text})


def player_disconnected(player_id: str) -> Action:
    """Emitted by the transport when a player's last connection closes."""
    return Action(type=PLAYER_DISCONNECTED, player_id=player_id)


def timeout_expired(phase: str, turn_number: int, phase_seq: int | None = None) -> Action:
    """
    Deferred fairness timeout for (phase, turn_number).
    phase_seq pins the timeout to one phase entry, so a crisis round timer
    cannot close the following round. Stale timeouts are rejected by the reducer.
    """
    payload = {"phase": phase, "turn_number": turn_number}
    if phase_seq is not None:
        payload["phase_seq"] = phase_seq
    return Action(type=TIMEOUT_EXPIRED, player_id=None, payload=payload)
