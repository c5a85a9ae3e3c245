"""
Deal ledger: proposal, response, and per-vote fulfillment checks.

Deals are fully public. Status only moves forward
(pending -> active -> fulfilled | broken); rejected deals are removed.
Token gifts transfer at activation. Vote commitments are checked against
the recorded vote of every scoped vote; a mismatch (abstaining included)
breaks the deal for that party.
"""

from typing import Any

from coalition.engine import BREACH_COMPENSATION, BREACH_PENALTY
from coalition.engine.errors import (
    AuthorizationError,
    ResourceExhaustedError,
    StateConflictError,
    ValidationError,
)
from coalition.engine.events import (
    GameEvent,
    deal_accepted,
    deal_breached,
    deal_fulfilled,
    deal_proposed,
    deal_rejected,
    deal_withdrawn,
    tokens_transferred,
)
from coalition.engine.state import (
    DEAL_ACTIVE,
    DEAL_BROKEN,
    DEAL_FULFILLED,
    DEAL_PENDING,
    DEAL_SCOPES,
    SCOPE_NEXT_N_TURNS,
    SCOPE_THIS_VOTE,
    VOTE_NO,
    VOTE_YES,
    Deal,
    DealCommitment,
    RoomState,
)
from coalition.engine.utils import adjust_influence


def parse_commitment(raw: Any) -> DealCommitment:
    """Validate a commitment payload: {"type": "vote", "choice": yes|no} or {"type": "token", "action": "give"}."""
    if not isinstance(raw, dict):
        raise ValidationError("Commitment must be an object")
    kind = raw.get("type")
    if kind == "vote":
        choice = raw.get("choice")
        if choice not in (VOTE_YES, VOTE_NO):
            raise ValidationError(f"Vote commitment choice must be 'yes' or 'no', got {choice!r}")
        return DealCommitment(type="vote", choice=choice)
    if kind == "token":
        if raw.get("action") != "give":
            raise ValidationError(f"Token commitment action must be 'give', got {raw.get('action')!r}")
        return DealCommitment(type="token", action="give")
    raise ValidationError(f"Unknown commitment type: {kind!r}")


def propose(state: RoomState, initiator_id: str, payload: dict, timestamp: float = 0.0) -> tuple[Deal, list[GameEvent]]:
    """
    Create a pending deal on the working state.
    Rejects self-deals, unknown responders, bad scopes, and token gifts the
    giver cannot currently honor.
    """
    responder_id = payload.get("responder_id")
    if responder_id == initiator_id:
        raise ValidationError("Cannot propose a deal to yourself")
    if responder_id not in state.players:
        raise ValidationError(f"Unknown responder: {responder_id}")

    initiator_commitment = parse_commitment(payload.get("initiator_commitment"))
    responder_commitment = parse_commitment(payload.get("responder_commitment"))

    scope = payload.get("scope", "this_vote")
    if scope not in DEAL_SCOPES:
        raise ValidationError(f"Unknown deal scope: {scope!r}")
    scope_value = None
    if scope == SCOPE_NEXT_N_TURNS:
        scope_value = payload.get("scope_value")
        max_turns = state.settings.max_deal_turns
        if not isinstance(scope_value, int) or isinstance(scope_value, bool) or not 1 <= scope_value <= max_turns:
            raise ValidationError(f"scope_value must be an integer between 1 and {max_turns}")

    for player_id, commitment in ((initiator_id, initiator_commitment), (responder_id, responder_commitment)):
        if commitment.is_token_gift and state.players[player_id].own_tokens <= 0:
            raise ResourceExhaustedError(f"{player_id} has no support tokens to give")

    deal = Deal(
        id=state.generate_deal_id(),
        initiator_id=initiator_id,
        responder_id=responder_id,
        initiator_commitment=initiator_commitment,
        responder_commitment=responder_commitment,
        scope=scope,
        scope_value=scope_value,
        status=DEAL_PENDING,
        created_at=timestamp,
        created_turn=state.turn_number,
    )
    state.deals.append(deal)
    return deal, [deal_proposed(deal.to_dict())]


def respond(state: RoomState, responder_id: str, deal_id: Any, accept: Any) -> list[GameEvent]:
    """Accept (activate, transferring tokens) or reject (remove) a pending deal. Responder only."""
    if not isinstance(accept, bool):
        raise ValidationError("accept must be true or false")
    deal = state.get_deal(deal_id) if isinstance(deal_id, str) else None
    if deal is None:
        raise ValidationError(f"Unknown deal: {deal_id}")
    if deal.responder_id != responder_id:
        raise AuthorizationError("Only the responder can answer this deal")
    if deal.status != DEAL_PENDING:
        raise StateConflictError(f"Deal {deal.id} is already {deal.status}")

    if not accept:
        state.deals.remove(deal)
        return [deal_rejected(deal.id, responder_id)]

    events: list[GameEvent] = []
    # Check both gifts before moving anything
    gifts = [
        (giver_id, deal.counterparty(giver_id))
        for giver_id in (deal.initiator_id, deal.responder_id)
        if deal.commitment_for(giver_id).is_token_gift
    ]
    for giver_id, _ in gifts:
        if state.players[giver_id].own_tokens <= 0:
            raise ResourceExhaustedError(f"{giver_id} no longer has a support token to give")
    for giver_id, receiver_id in gifts:
        state.players[giver_id].own_tokens -= 1
        state.players[receiver_id].own_tokens += 1
        events.append(tokens_transferred(giver_id, receiver_id, deal.id))

    deal.status = DEAL_ACTIVE
    deal.votes_remaining = deal.scope_value if deal.scope == SCOPE_NEXT_N_TURNS else 1
    events.insert(0, deal_accepted(deal.to_dict()))
    return events


def withdraw_pending(state: RoomState, reason: str) -> list[GameEvent]:
    """Drop every unanswered deal, e.g. when voting opens."""
    pending = [d for d in state.deals if d.status == DEAL_PENDING]
    for deal in pending:
        state.deals.remove(deal)
    return [deal_withdrawn(d.id, reason) for d in pending]


def withdraw_unvoted(state: RoomState, reason: str) -> list[GameEvent]:
    """
    Drop pending deals and active this_vote deals when the turn ends
    without a vote. Tokens already transferred at activation stay put.
    """
    dropped = [
        d for d in state.deals
        if d.status == DEAL_PENDING or (d.status == DEAL_ACTIVE and d.scope == SCOPE_THIS_VOTE)
    ]
    for deal in dropped:
        state.deals.remove(deal)
    return [deal_withdrawn(d.id, reason) for d in dropped]


def check_fulfillment(deal: Deal, recorded_choices: dict[str, str | None]) -> list[str]:
    """
    Return the ids of parties who broke a vote commitment in this vote.
    recorded_choices maps player_id -> yes/no/abstain (None if no vote was recorded).
    Token commitments were honored at activation and can never break.
    """
    breakers = []
    for party_id in (deal.initiator_id, deal.responder_id):
        commitment = deal.commitment_for(party_id)
        if commitment.is_vote and recorded_choices.get(party_id) != commitment.choice:
            breakers.append(party_id)
    return breakers


def resolve_deals_for_vote(
    state: RoomState,
    recorded_choices: dict[str, str | None],
) -> tuple[list[str], list[GameEvent]]:
    """
    Run the fulfillment check for every active deal against this vote.

    Breach: deal is broken immediately, breaker loses BREACH_PENALTY influence
    (floored at 0) and the counterparty gains BREACH_COMPENSATION. When both
    parties break, each side is penalized and compensated.
    A deal whose scope is exhausted without breach becomes fulfilled.

    Returns: (ids of deals resolved this vote, events)
    """
    resolved: list[str] = []
    events: list[GameEvent] = []
    turn_number = state.turn_number

    for deal in state.deals:
        if deal.status != DEAL_ACTIVE:
            continue

        breakers = check_fulfillment(deal, recorded_choices)
        if breakers:
            deal.status = DEAL_BROKEN
            deal.breaker_ids = breakers
            deal.resolved_turn = turn_number
            resolved.append(deal.id)
            for breaker_id in breakers:
                victim_id = deal.counterparty(breaker_id)
                events.append(deal_breached(
                    deal.id,
                    breaker_id,
                    victim_id,
                    committed_choice=deal.commitment_for(breaker_id).choice,
                    actual_choice=recorded_choices.get(breaker_id),
                    breaker_penalty=BREACH_PENALTY,
                    victim_compensation=BREACH_COMPENSATION,
                    turn_number=turn_number,
                ))
                events.append(adjust_influence(state, breaker_id, -BREACH_PENALTY, "deal_breach"))
                events.append(adjust_influence(state, victim_id, BREACH_COMPENSATION, "deal_compensation"))
            continue

        deal.votes_remaining -= 1
        if deal.votes_remaining <= 0:
            deal.status = DEAL_FULFILLED
            deal.resolved_turn = turn_number
            resolved.append(deal.id)
            events.append(deal_fulfilled(deal.id, turn_number))

    return resolved, events
