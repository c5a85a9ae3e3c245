"""
Room state representation.
The reducer never mutates the state it is given; it works on state.copy()
and the session swaps the copy in only after the action succeeds.
"""

import json
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any

from coalition.config import GameSettings, DEFAULT_SETTINGS


# Room status
STATUS_LOBBY = "lobby"
STATUS_PLAYING = "playing"
STATUS_FINISHED = "finished"
STATUS_COLLAPSED = "collapsed"

# Phases, in forward order
PHASE_WAITING = "waiting"
PHASE_ROLLING = "rolling"
PHASE_DRAWING = "drawing"
PHASE_REVIEWING = "reviewing"
PHASE_DELIBERATING = "deliberating"
PHASE_PROPOSING = "proposing"
PHASE_VOTING = "voting"
PHASE_REVEALING = "revealing"
PHASE_RESOLVING = "resolving"
PHASE_SHOWING_RESULTS = "showingResults"
PHASE_CRISIS = "crisis"
PHASE_FINISHED = "finished"
PHASE_COLLAPSED = "collapsed"

TERMINAL_PHASES = (PHASE_FINISHED, PHASE_COLLAPSED)

# Votes
VOTE_YES = "yes"
VOTE_NO = "no"
VOTE_ABSTAIN = "abstain"
VOTE_CHOICES = (VOTE_YES, VOTE_NO, VOTE_ABSTAIN)

# Deals
DEAL_PENDING = "pending"
DEAL_ACTIVE = "active"
DEAL_FULFILLED = "fulfilled"
DEAL_BROKEN = "broken"
DEAL_TERMINAL = (DEAL_FULFILLED, DEAL_BROKEN)

SCOPE_THIS_VOTE = "this_vote"
SCOPE_NEXT_N_TURNS = "next_n_turns"
DEAL_SCOPES = (SCOPE_THIS_VOTE, SCOPE_NEXT_N_TURNS)


@dataclass
class NationState:
    """Shared stability/budget pair. Collapse is checked after every mutation."""
    stability: int
    budget: int

    def to_dict(self) -> dict[str, int]:
        return {"stability": self.stability, "budget": self.budget}


@dataclass
class Player:
    """A seated participant. Owned by the room; mutated only by the reducer."""
    id: str
    display_name: str
    seat: int  # join order, used for turn order and deterministic tie-breaks
    ideology: str | None = None
    position: int = 0
    influence: int = 0
    own_tokens: int = 0
    is_connected: bool = True
    is_afk: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "seat": self.seat,
            "ideology": self.ideology,
            "position": self.position,
            "influence": self.influence,
            "own_tokens": self.own_tokens,
            "is_connected": self.is_connected,
            "is_afk": self.is_afk,
        }


@dataclass(frozen=True)
class DealCommitment:
    """Either a vote commitment (type="vote", choice yes/no) or a token gift (type="token", action="give")."""
    type: str
    choice: str | None = None
    action: str | None = None

    @property
    def is_vote(self) -> bool:
        return self.type == "vote"

    @property
    def is_token_gift(self) -> bool:
        return self.type == "token" and self.action == "give"

    def to_dict(self) -> dict[str, Any]:
        if self.is_vote:
            return {"type": "vote", "choice": self.choice}
        return {"type": "token", "action": self.action}


@dataclass
class Deal:
    """
    A binding commitment between two players.
    Status only moves forward: pending -> active -> fulfilled | broken.
    """
    id: str
    initiator_id: str
    responder_id: str
    initiator_commitment: DealCommitment
    responder_commitment: DealCommitment
    scope: str  # "this_vote" or "next_n_turns"
    scope_value: int | None = None
    status: str = DEAL_PENDING
    created_at: float = 0.0
    created_turn: int = 0
    # Scoped votes still to be checked; set on activation
    votes_remaining: int = 0
    resolved_turn: int | None = None
    breaker_ids: list[str] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status in (DEAL_PENDING, DEAL_ACTIVE)

    def commitment_for(self, player_id: str) -> DealCommitment | None:
        if player_id == self.initiator_id:
            return self.initiator_commitment
        if player_id == self.responder_id:
            return self.responder_commitment
        return None

    def counterparty(self, player_id: str) -> str:
        return self.responder_id if player_id == self.initiator_id else self.initiator_id

    def to_dict(self) -> dict[str, Any]:
        out = {
            "id": self.id,
            "initiator_id": self.initiator_id,
            "responder_id": self.responder_id,
            "terms": {
                "initiator_commitment": self.initiator_commitment.to_dict(),
                "responder_commitment": self.responder_commitment.to_dict(),
            },
            "scope": self.scope,
            "status": self.status,
            "created_at": self.created_at,
            "created_turn": self.created_turn,
        }
        if self.scope_value is not None:
            out["scope_value"] = self.scope_value
        if self.status == DEAL_ACTIVE:
            out["votes_remaining"] = self.votes_remaining
        if self.resolved_turn is not None:
            out["resolved_turn"] = self.resolved_turn
        if self.breaker_ids:
            out["breaker_ids"] = list(self.breaker_ids)
        return out


@dataclass
class Vote:
    """Transient per-turn vote; cleared once the turn resolves."""
    player_id: str
    choice: str
    influence_spent: int = 0
    timestamp: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "choice": self.choice,
            "influence_spent": self.influence_spent,
        }


@dataclass
class ActiveCrisis:
    """A crisis in progress. contributions: player_id -> influence contributed."""
    crisis_id: str
    turns_remaining: int
    contributions: dict[str, int] = field(default_factory=dict)
    # Players who have closed out the current crisis round
    ready: list[str] = field(default_factory=list)
    started_turn: int = 0

    @property
    def total_contribution(self) -> int:
        return sum(self.contributions.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "crisis_id": self.crisis_id,
            "turns_remaining": self.turns_remaining,
            "contributions": dict(self.contributions),
            "total_contribution": self.total_contribution,
            "ready": list(self.ready),
            "started_turn": self.started_turn,
        }


@dataclass(frozen=True)
class VoteRecord:
    player_id: str
    ideology: str | None
    choice: str
    influence_spent: int
    weight: int
    aligned_with_ideology: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "ideology": self.ideology,
            "choice": self.choice,
            "influence_spent": self.influence_spent,
            "weight": self.weight,
            "aligned_with_ideology": self.aligned_with_ideology,
        }


@dataclass(frozen=True)
class MovementRecord:
    player_id: str
    dice_roll: int
    roll_modifier: int
    ideology_modifier: int
    nation_modifier: int
    influence_bonus: int
    total_movement: int
    position_before: int
    position_after: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "dice_roll": self.dice_roll,
            "roll_modifier": self.roll_modifier,
            "ideology_modifier": self.ideology_modifier,
            "nation_modifier": self.nation_modifier,
            "influence_bonus": self.influence_bonus,
            "total_movement": self.total_movement,
            "position_before": self.position_before,
            "position_after": self.position_after,
        }


@dataclass(frozen=True)
class TurnHistoryEntry:
    """Append-only record of one resolved turn."""
    turn_number: int
    active_player_id: str
    card_id: str
    card_title: str
    zone: str
    option_id: str
    option_name: str
    votes: tuple[VoteRecord, ...]
    outcome: str  # "passed" or "failed"
    yes_count: int
    no_count: int
    abstain_count: int
    margin: str
    nation_before: tuple[int, int]  # (stability, budget)
    nation_after: tuple[int, int]
    movements: tuple[MovementRecord, ...]
    deals_resolved: tuple[str, ...] = ()
    concepts_triggered: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        stability_before, budget_before = self.nation_before
        stability_after, budget_after = self.nation_after
        return {
            "turn_number": self.turn_number,
            "active_player_id": self.active_player_id,
            "proposal": {
                "card_id": self.card_id,
                "card_title": self.card_title,
                "zone": self.zone,
                "option_id": self.option_id,
                "option_name": self.option_name,
            },
            "votes": [v.to_dict() for v in self.votes],
            "outcome": self.outcome,
            "yes_count": self.yes_count,
            "no_count": self.no_count,
            "abstain_count": self.abstain_count,
            "margin": self.margin,
            "nation_changes": {
                "stability_before": stability_before,
                "stability_after": stability_after,
                "stability_delta": stability_after - stability_before,
                "budget_before": budget_before,
                "budget_after": budget_after,
                "budget_delta": budget_after - budget_before,
            },
            "movements": [m.to_dict() for m in self.movements],
            "deals_resolved": list(self.deals_resolved),
            "concepts_triggered": list(self.concepts_triggered),
        }


@dataclass
class RoomState:
    """Complete authoritative state for one room."""
    room_id: str
    status: str = STATUS_LOBBY
    phase: str = PHASE_WAITING
    # Bumped on every phase entry (and every crisis round); keys fairness timeouts
    phase_seq: int = 0
    host_id: str | None = None
    # player_id -> Player; insertion order is seat order
    players: dict[str, Player] = field(default_factory=dict)
    turn_number: int = 0
    active_player_id: str | None = None
    nation: NationState = field(
        default_factory=lambda: NationState(
            stability=DEFAULT_SETTINGS.starting_stability,
            budget=DEFAULT_SETTINGS.starting_budget,
        )
    )
    settings: GameSettings = DEFAULT_SETTINGS

    # Per-turn state, cleared when the next turn starts
    dice_roll: int | None = None
    modified_roll: int | None = None
    current_card_id: str | None = None
    selected_option_id: str | None = None
    votes: dict[str, Vote] = field(default_factory=dict)
    ready_players: list[str] = field(default_factory=list)
    pending_acks: list[str] = field(default_factory=list)
    last_turn_result: dict[str, Any] | None = None

    deals: list[Deal] = field(default_factory=list)
    deal_counter: int = 0

    active_crisis: ActiveCrisis | None = None
    last_crisis_turn: int | None = None

    drawn_card_ids: list[str] = field(default_factory=list)
    history: list[TurnHistoryEntry] = field(default_factory=list)

    winner_id: str | None = None
    collapse_reason: str | None = None

    def copy(self) -> "RoomState":
        """Return a deep copy of this room state."""
        return deepcopy(self)

    @property
    def is_over(self) -> bool:
        return self.status in (STATUS_FINISHED, STATUS_COLLAPSED)

    def seat_order(self) -> list[str]:
        return sorted(self.players, key=lambda pid: self.players[pid].seat)

    def connected_player_ids(self) -> list[str]:
        return [pid for pid in self.seat_order() if self.players[pid].is_connected]

    def generate_deal_id(self) -> str:
        self.deal_counter += 1
        return f"deal_{self.deal_counter:03d}"

    def get_deal(self, deal_id: str) -> Deal | None:
        for deal in self.deals:
            if deal.id == deal_id:
                return deal
        return None

    def open_deals(self) -> list[Deal]:
        return [d for d in self.deals if d.is_open]

    # ===== Serialization =====

    def to_dict(self) -> dict[str, Any]:
        """Full unfiltered state, for debugging and logs. Clients get queries.room_state_payload."""
        return {
            "room_id": self.room_id,
            "status": self.status,
            "phase": self.phase,
            "phase_seq": self.phase_seq,
            "host_id": self.host_id,
            "players": [self.players[pid].to_dict() for pid in self.seat_order()],
            "turn_number": self.turn_number,
            "active_player_id": self.active_player_id,
            "nation": self.nation.to_dict(),
            "settings": self.settings.to_dict(),
            "dice_roll": self.dice_roll,
            "modified_roll": self.modified_roll,
            "current_card_id": self.current_card_id,
            "selected_option_id": self.selected_option_id,
            "votes": {pid: v.to_dict() for pid, v in self.votes.items()},
            "ready_players": list(self.ready_players),
            "pending_acks": list(self.pending_acks),
            "deals": [d.to_dict() for d in self.deals],
            "active_crisis": self.active_crisis.to_dict() if self.active_crisis else None,
            "last_crisis_turn": self.last_crisis_turn,
            "drawn_card_ids": list(self.drawn_card_ids),
            "history": [h.to_dict() for h in self.history],
            "winner_id": self.winner_id,
            "collapse_reason": self.collapse_reason,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
