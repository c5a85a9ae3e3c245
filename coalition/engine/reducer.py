"""
Main turn reducer.
Applies actions to state, enforcing rules and producing new state.
Returns (new_state, events) where events describe what happened.

The input state is never mutated: validation runs against a deep copy and
any rejection (an EngineError) discards the copy.
"""

from coalition.engine import crisis as crisis_rules
from coalition.engine import deals as deal_ledger
from coalition.engine import DICE_SIDES
from coalition.engine.actions import (
    Action,
    ACKNOWLEDGE_RESULTS,
    CAST_VOTE,
    CONTRIBUTE_TO_CRISIS,
    JOIN_ROOM,
    MARK_READY,
    PLAYER_DISCONNECTED,
    PROPOSE_DEAL,
    RESPOND_DEAL,
    ROLL_DICE,
    SELECT_IDEOLOGY,
    SELECT_OPTION,
    SEND_CHAT_MESSAGE,
    START_GAME,
    SYSTEM_ACTIONS,
    TIMEOUT_EXPIRED,
)
from coalition.engine.concepts import detect_turn_concepts
from coalition.engine.definitions import Definitions
from coalition.engine.errors import (
    AuthorizationError,
    ResourceExhaustedError,
    StateConflictError,
    ValidationError,
)
from coalition.engine.events import (
    GameEvent,
    card_drawn,
    chat_message,
    crisis_resolved,
    dice_rolled,
    game_finished,
    game_started,
    host_changed,
    ideology_selected,
    influence_changed,
    nation_changed,
    nation_collapsed,
    option_selected,
    phase_changed,
    player_afk,
    player_disconnected,
    player_joined,
    player_left,
    player_ready,
    player_reconnected,
    results_acknowledged,
    timeout_applied,
    turn_result,
    turn_skipped,
    turn_started,
    vote_cast,
)
from coalition.engine.movement import calculate_movement
from coalition.engine.nation import apply_nation_changes, check_collapse, check_victory, modified_roll
from coalition.engine.state import (
    PHASE_COLLAPSED,
    PHASE_CRISIS,
    PHASE_DELIBERATING,
    PHASE_DRAWING,
    PHASE_FINISHED,
    PHASE_PROPOSING,
    PHASE_RESOLVING,
    PHASE_REVEALING,
    PHASE_REVIEWING,
    PHASE_ROLLING,
    PHASE_SHOWING_RESULTS,
    PHASE_VOTING,
    PHASE_WAITING,
    STATUS_COLLAPSED,
    STATUS_FINISHED,
    STATUS_LOBBY,
    STATUS_PLAYING,
    VOTE_ABSTAIN,
    VOTE_CHOICES,
    NationState,
    Player,
    RoomState,
    TurnHistoryEntry,
    Vote,
    VoteRecord,
)
from coalition.engine.voting import is_aligned_vote, tally_votes, vote_weight

MAX_DISPLAY_NAME = 32

# Accepted in any status and phase; each handler checks its own preconditions
ALWAYS_ALLOWED = [JOIN_ROOM, SEND_CHAT_MESSAGE, PLAYER_DISCONNECTED, TIMEOUT_EXPIRED]

LOBBY_ACTIONS = [SELECT_IDEOLOGY, START_GAME]

# Phase rules: which action types are allowed in which phases while playing
PHASE_ALLOWED_ACTIONS = {
    PHASE_WAITING: [ROLL_DICE],
    PHASE_REVIEWING: [MARK_READY, PROPOSE_DEAL, RESPOND_DEAL],
    PHASE_DELIBERATING: [SELECT_OPTION, PROPOSE_DEAL, RESPOND_DEAL],
    PHASE_VOTING: [CAST_VOTE],
    PHASE_SHOWING_RESULTS: [ACKNOWLEDGE_RESULTS],
    PHASE_CRISIS: [CONTRIBUTE_TO_CRISIS, MARK_READY],
}


def _validate_action_for_phase(action: Action, state: RoomState) -> None:
    """
    Validate that an action is allowed in the current status and phase.
    Raises StateConflictError otherwise.
    """
    if action.type in ALWAYS_ALLOWED:
        return

    if state.status == STATUS_LOBBY:
        if action.type not in LOBBY_ACTIONS:
            raise StateConflictError(f"Action '{action.type}' is not allowed before the game starts")
        return

    if state.is_over:
        raise StateConflictError(f"Game is over ({state.status})")

    allowed_actions = PHASE_ALLOWED_ACTIONS.get(state.phase, [])
    if action.type not in allowed_actions:
        raise StateConflictError(
            f"Action '{action.type}' is not allowed in phase '{state.phase}'. "
            f"Allowed actions: {', '.join(allowed_actions + ALWAYS_ALLOWED)}"
        )


def apply_action(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    """
    Apply a single action to the current state, returning new state and events.

    Validates:
    - Action type is known
    - Acting player belongs to the room (except join_room and timeouts)
    - Action is valid for the current status and phase

    Args:
        state: Current room state
        action: Action to apply
        defs: Static definitions (ideologies, cards, crises, concepts)

    Returns:
        Tuple of (new_state, events) where events describe what happened

    Raises:
        EngineError subclass on rejection; state is left untouched.
    """
    handler = _HANDLERS.get(action.type)
    if handler is None:
        raise ValidationError(f"Unknown action type: {action.type}")

    if action.type != TIMEOUT_EXPIRED:
        if not isinstance(action.player_id, str) or not action.player_id:
            raise ValidationError("Action requires a player id")
        if action.type != JOIN_ROOM and action.player_id not in state.players:
            raise AuthorizationError(f"Player {action.player_id} is not in this room")

    _validate_action_for_phase(action, state)

    new_state = state.copy()
    new_state, events = handler(new_state, action, defs)

    # Any accepted intent from a player clears their AFK flag
    if action.type not in SYSTEM_ACTIONS:
        player = new_state.players.get(action.player_id)
        if player is not None:
            player.is_afk = False

    return new_state, events


# ===== Phase helpers =====

def _set_phase(state: RoomState, new_phase: str, events: list[GameEvent]) -> None:
    old_phase = state.phase
    state.phase = new_phase
    state.phase_seq += 1
    events.append(phase_changed(old_phase, new_phase, state.turn_number))


def _require_active_player(state: RoomState, action: Action) -> None:
    if action.player_id != state.active_player_id:
        raise AuthorizationError(
            f"Not your turn: {state.active_player_id} is the active player")


def _pending_reviewers(state: RoomState) -> list[str]:
    return [
        pid for pid in state.connected_player_ids()
        if pid != state.active_player_id and pid not in state.ready_players
    ]


def _pending_voters(state: RoomState) -> list[str]:
    return [pid for pid in state.connected_player_ids() if pid not in state.votes]


def _pending_crisis_players(state: RoomState) -> list[str]:
    return [pid for pid in state.connected_player_ids() if pid not in state.active_crisis.ready]


def _advance_if_unblocked(state: RoomState, defs: Definitions, events: list[GameEvent]) -> None:
    """
    Advance a phase that waits on every connected player once nobody is pending.
    Nothing advances while no player is connected; the fairness timeout covers that.
    """
    if not state.connected_player_ids():
        return
    if state.phase == PHASE_REVIEWING:
        if not _pending_reviewers(state):
            _set_phase(state, PHASE_DELIBERATING, events)
    elif state.phase == PHASE_VOTING:
        if not _pending_voters(state):
            _resolve_turn(state, defs, events)
    elif state.phase == PHASE_SHOWING_RESULTS:
        state.pending_acks = [pid for pid in state.pending_acks if state.players[pid].is_connected]
        if not state.pending_acks:
            _start_next_turn(state, events)
    elif state.phase == PHASE_CRISIS:
        if not _pending_crisis_players(state):
            _close_crisis_round(state, defs, events)


def _next_active_player(state: RoomState) -> str:
    """Next seat after the current active player, skipping disconnected players when possible."""
    order = state.seat_order()
    start = order.index(state.active_player_id) if state.active_player_id in order else -1
    candidates = [order[(start + i) % len(order)] for i in range(1, len(order) + 1)]
    for pid in candidates:
        if state.players[pid].is_connected:
            return pid
    return candidates[0]


def _clear_turn_state(state: RoomState) -> None:
    state.dice_roll = None
    state.modified_roll = None
    state.current_card_id = None
    state.selected_option_id = None
    state.votes = {}
    state.ready_players = []
    state.pending_acks = []


def _start_next_turn(state: RoomState, events: list[GameEvent]) -> None:
    events.extend(deal_ledger.withdraw_pending(state, "turn_ended"))
    _clear_turn_state(state)
    state.turn_number += 1
    state.active_player_id = _next_active_player(state)
    events.append(turn_started(state.turn_number, state.active_player_id))
    _set_phase(state, PHASE_WAITING, events)


def _collapse(state: RoomState, reason: str, events: list[GameEvent]) -> None:
    state.status = STATUS_COLLAPSED
    state.collapse_reason = reason
    _set_phase(state, PHASE_COLLAPSED, events)
    events.append(nation_collapsed(reason, state.nation.stability, state.nation.budget))


def _finish(state: RoomState, winner_id: str, events: list[GameEvent]) -> None:
    state.status = STATUS_FINISHED
    state.winner_id = winner_id
    _set_phase(state, PHASE_FINISHED, events)
    winner = state.players[winner_id]
    events.append(game_finished(winner_id, winner.position, winner.influence))


# ===== Lobby =====

def _handle_join_room(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    """
    Join the room, or reconnect when the player id is already seated.
    New players are only admitted in the lobby and while seats remain.
    The first player to join is the host.
    """
    player_id = action.player_id
    existing = state.players.get(player_id)
    if existing is not None:
        existing.is_connected = True
        existing.is_afk = False
        return state, [player_reconnected(player_id)]

    display_name = action.payload.get("display_name")
    if not isinstance(display_name, str) or not display_name.strip():
        raise ValidationError("display_name is required")
    display_name = display_name.strip()
    if len(display_name) > MAX_DISPLAY_NAME:
        raise ValidationError(f"display_name must be at most {MAX_DISPLAY_NAME} characters")

    if state.status != STATUS_LOBBY:
        raise StateConflictError("Game already in progress")
    if len(state.players) >= state.settings.max_players:
        raise StateConflictError(f"Room is full ({state.settings.max_players} players)")

    seat = max((p.seat for p in state.players.values()), default=-1) + 1
    state.players[player_id] = Player(id=player_id, display_name=display_name, seat=seat)
    events = [player_joined(player_id, display_name, seat)]
    if state.host_id is None:
        state.host_id = player_id
        events.append(host_changed(None, player_id))
    return state, events


def _handle_select_ideology(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    ideology = action.payload.get("ideology")
    if ideology not in defs.ideologies:
        raise ValidationError(f"Unknown ideology: {ideology}")
    for pid, player in state.players.items():
        if pid != action.player_id and player.ideology == ideology:
            raise StateConflictError(f"Ideology {ideology} is already taken")
    state.players[action.player_id].ideology = ideology
    return state, [ideology_selected(action.player_id, ideology)]


def _handle_start_game(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    """
    Host starts the game. Deals starting influence and tokens, resets the
    nation, and gives seat 0 the first turn.
    """
    if action.player_id != state.host_id:
        raise AuthorizationError("Only the host can start the game")
    settings = state.settings
    count = len(state.players)
    if not settings.min_players <= count <= settings.max_players:
        raise StateConflictError(
            f"Need {settings.min_players}-{settings.max_players} players to start, have {count}")
    missing = [pid for pid, p in state.players.items() if p.ideology is None]
    if missing:
        raise StateConflictError(f"Players without an ideology: {', '.join(missing)}")

    for player in state.players.values():
        player.position = 0
        player.influence = settings.starting_influence
        player.own_tokens = settings.starting_tokens
        player.is_afk = False

    state.nation = NationState(stability=settings.starting_stability, budget=settings.starting_budget)
    state.status = STATUS_PLAYING
    state.turn_number = 1
    order = state.seat_order()
    state.active_player_id = order[0]
    state.phase = PHASE_WAITING
    state.phase_seq += 1

    return state, [game_started(order), turn_started(state.turn_number, state.active_player_id)]


def _handle_player_disconnected(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    """
    In the lobby the seat is freed (host passes to the next seat).
    In game the player is marked disconnected and any wait-for-all block
    is re-evaluated without them.
    """
    player_id = action.player_id
    events: list[GameEvent] = []

    if state.status == STATUS_LOBBY:
        del state.players[player_id]
        events.append(player_left(player_id))
        if state.host_id == player_id:
            order = state.seat_order()
            state.host_id = order[0] if order else None
            events.append(host_changed(player_id, state.host_id))
        return state, events

    player = state.players[player_id]
    if not player.is_connected:
        raise StateConflictError(f"Player {player_id} is already disconnected")
    player.is_connected = False
    events.append(player_disconnected(player_id))

    if state.status == STATUS_PLAYING:
        _advance_if_unblocked(state, defs, events)
    return state, events


def _handle_send_chat_message(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    """Chat is relayed as an event only; it never changes game state."""
    text = action.payload.get("text")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Message text is required")
    text = text.strip()
    if len(text) > state.settings.max_chat_length:
        raise ValidationError(f"Message exceeds {state.settings.max_chat_length} characters")
    player = state.players[action.player_id]
    return state, [chat_message(player.id, player.display_name, text, action.timestamp)]


# ===== Turn flow =====

def _handle_roll_dice(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    """
    Active player rolls. A crisis whose trigger matches voids the roll and
    takes over the turn; otherwise the roll is recorded, the card is drawn
    and everyone moves to review.
    """
    _require_active_player(state, action)
    events: list[GameEvent] = []

    roll = action.payload.get("roll")
    if not isinstance(roll, int) or isinstance(roll, bool) or not 1 <= roll <= DICE_SIDES:
        raise ValidationError(f"Roll must be between 1 and {DICE_SIDES}")
    card_id = action.payload.get("card_id")
    card = defs.cards.get(card_id) if isinstance(card_id, str) else None
    if card is None:
        raise ValidationError(f"Unknown card: {card_id}")
    crisis_roll = action.payload.get("crisis_roll")
    if crisis_roll is not None and (
        not isinstance(crisis_roll, int) or isinstance(crisis_roll, bool) or not 0 <= crisis_roll <= 99
    ):
        raise ValidationError("crisis_roll must be between 0 and 99")

    triggered = crisis_rules.find_triggered_crisis(state, defs, crisis_roll)
    if triggered is not None:
        events.extend(crisis_rules.start_crisis(state, triggered))
        _set_phase(state, PHASE_CRISIS, events)
        return state, events

    _set_phase(state, PHASE_ROLLING, events)
    state.dice_roll = roll
    state.modified_roll = modified_roll(roll, state.nation)
    events.append(dice_rolled(action.player_id, roll, state.modified_roll - roll, state.modified_roll))

    _set_phase(state, PHASE_DRAWING, events)
    state.current_card_id = card.id
    if card.id not in state.drawn_card_ids:
        state.drawn_card_ids.append(card.id)
    events.append(card_drawn(card.id, card.zone, card.title))

    state.ready_players = []
    _set_phase(state, PHASE_REVIEWING, events)
    _advance_if_unblocked(state, defs, events)
    return state, events


def _handle_mark_ready(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    """Review: non-active players signal they have read the card. Crisis: done for this round."""
    player_id = action.player_id
    events: list[GameEvent] = []

    if state.phase == PHASE_CRISIS:
        if player_id in state.active_crisis.ready:
            raise StateConflictError("Already ready for this crisis round")
        state.active_crisis.ready.append(player_id)
    else:
        if player_id == state.active_player_id:
            raise StateConflictError("The active player does not review their own card")
        if player_id in state.ready_players:
            raise StateConflictError("Already marked ready")
        state.ready_players.append(player_id)

    events.append(player_ready(player_id, state.phase))
    _advance_if_unblocked(state, defs, events)
    return state, events


def _handle_select_option(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    """
    Active player puts one option of the card to the vote. The choice is
    final; unanswered deals are withdrawn and voting opens.
    """
    _require_active_player(state, action)
    card = defs.cards[state.current_card_id]
    option = card.get_option(action.payload.get("option_id"))
    if option is None:
        raise ValidationError(f"Card {card.id} has no option {action.payload.get('option_id')!r}")

    events: list[GameEvent] = []
    state.selected_option_id = option.id
    _set_phase(state, PHASE_PROPOSING, events)
    events.append(option_selected(action.player_id, option.id, option.name))

    events.extend(deal_ledger.withdraw_pending(state, "voting_opened"))
    state.votes = {}
    _set_phase(state, PHASE_VOTING, events)
    return state, events


def _handle_propose_deal(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    _, events = deal_ledger.propose(state, action.player_id, action.payload, action.timestamp)
    return state, events


def _handle_respond_deal(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    events = deal_ledger.respond(
        state, action.player_id, action.payload.get("deal_id"), action.payload.get("accept"))
    return state, events


def _handle_cast_vote(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    """
    Record one vote per player. Influence spent is deducted immediately.
    Only the fact of voting is broadcast; choices are revealed together
    once every connected player has voted.
    """
    player_id = action.player_id
    choice = action.payload.get("choice")
    if choice not in VOTE_CHOICES:
        raise ValidationError(f"Vote must be one of {', '.join(VOTE_CHOICES)}")
    influence_spent = action.payload.get("influence_spent", 0)
    if not isinstance(influence_spent, int) or isinstance(influence_spent, bool) or influence_spent < 0:
        raise ValidationError("influence_spent must be a non-negative integer")
    if choice == VOTE_ABSTAIN:
        influence_spent = 0
    if player_id in state.votes:
        raise StateConflictError("You have already voted this turn")
    player = state.players[player_id]
    if influence_spent > player.influence:
        raise ResourceExhaustedError(
            f"Insufficient influence: have {player.influence}, tried to spend {influence_spent}")

    events: list[GameEvent] = []
    if influence_spent:
        old_value = player.influence
        player.influence -= influence_spent
        events.append(influence_changed(player_id, old_value, player.influence, "vote"))
    state.votes[player_id] = Vote(
        player_id=player_id,
        choice=choice,
        influence_spent=influence_spent,
        timestamp=action.timestamp,
    )
    events.append(vote_cast(player_id))
    _advance_if_unblocked(state, defs, events)
    return state, events


def _resolve_turn(state: RoomState, defs: Definitions, events: list[GameEvent]) -> None:
    """
    voting -> revealing -> resolving -> showingResults (or a terminal phase).
    Tally, nation deltas, movement, deal checks, history, then collapse and victory.
    """
    _set_phase(state, PHASE_REVEALING, events)
    order = state.seat_order()
    votes = [state.votes[pid] for pid in order if pid in state.votes]
    tally = tally_votes(votes)

    _set_phase(state, PHASE_RESOLVING, events)
    card = defs.cards[state.current_card_id]
    option = card.get_option(state.selected_option_id)
    active_id = state.active_player_id

    nation_before = state.nation
    roll = state.dice_roll or 0
    roll_mod = (state.modified_roll or 0) - roll
    movements = []
    for pid in order:
        player = state.players[pid]
        record = calculate_movement(
            player,
            nation_before,
            option,
            is_active_player=pid == active_id,
            dice_roll=roll,
            roll_modifier=roll_mod,
            passed=tally.passed,
            track_length=state.settings.track_length,
        )
        player.position = record.position_after
        movements.append(record)

    if tally.passed:
        state.nation = apply_nation_changes(nation_before, option.stability_change, option.budget_change)
        events.append(nation_changed(
            nation_before.stability, nation_before.budget,
            state.nation.stability, state.nation.budget,
            f"option:{card.id}:{option.id}",
        ))

    recorded_choices = {v.player_id: v.choice for v in votes}
    deals_resolved, deal_events = deal_ledger.resolve_deals_for_vote(state, recorded_choices)
    events.extend(deal_events)

    vote_records = [
        VoteRecord(
            player_id=v.player_id,
            ideology=state.players[v.player_id].ideology,
            choice=v.choice,
            influence_spent=v.influence_spent,
            weight=vote_weight(v),
            aligned_with_ideology=is_aligned_vote(option, state.players[v.player_id].ideology, v.choice),
        )
        for v in votes
    ]
    concepts = detect_turn_concepts(
        vote_records, option, tally, nation_before, state.nation, deals_resolved)

    entry = TurnHistoryEntry(
        turn_number=state.turn_number,
        active_player_id=active_id,
        card_id=card.id,
        card_title=card.title,
        zone=card.zone,
        option_id=option.id,
        option_name=option.name,
        votes=tuple(vote_records),
        outcome=tally.outcome,
        yes_count=tally.yes_count,
        no_count=tally.no_count,
        abstain_count=tally.abstain_count,
        margin=tally.margin,
        nation_before=(nation_before.stability, nation_before.budget),
        nation_after=(state.nation.stability, state.nation.budget),
        movements=tuple(movements),
        deals_resolved=tuple(deals_resolved),
        concepts_triggered=tuple(concepts),
    )
    state.history.append(entry)
    state.last_turn_result = entry.to_dict()
    events.append(turn_result(state.last_turn_result))

    reason = check_collapse(state.nation)
    if reason is not None:
        _collapse(state, reason, events)
        return
    winner_id = check_victory([state.players[pid] for pid in order], state.settings.track_length)
    if winner_id is not None:
        _finish(state, winner_id, events)
        return

    state.pending_acks = state.connected_player_ids()
    _set_phase(state, PHASE_SHOWING_RESULTS, events)
    _advance_if_unblocked(state, defs, events)


def _handle_acknowledge_results(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    if action.player_id not in state.pending_acks:
        raise StateConflictError("Results already acknowledged")
    state.pending_acks.remove(action.player_id)
    events = [results_acknowledged(action.player_id)]
    _advance_if_unblocked(state, defs, events)
    return state, events


# ===== Crisis =====

def _handle_contribute_to_crisis(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    """Contribution that reaches the threshold resolves the crisis immediately."""
    crisis = defs.crises[state.active_crisis.crisis_id]
    events = crisis_rules.contribute(state, action.player_id, action.payload.get("amount"), crisis)
    if crisis_rules.threshold_met(state, crisis):
        _finish_crisis(state, defs, events)
    return state, events


def _close_crisis_round(state: RoomState, defs: Definitions, events: list[GameEvent]) -> None:
    events.extend(crisis_rules.close_round(state))
    if state.active_crisis.turns_remaining <= 0:
        _finish_crisis(state, defs, events)
    else:
        # New round: re-key the round timeout
        state.phase_seq += 1


def _finish_crisis(state: RoomState, defs: Definitions, events: list[GameEvent]) -> None:
    """Apply the crisis outcome; collapse or resume the interrupted turn at waiting."""
    crisis = defs.crises[state.active_crisis.crisis_id]
    resolution, nation_events = crisis_rules.resolve_crisis(state, crisis)
    events.extend(nation_events)
    events.append(crisis_resolved(resolution))

    reason = check_collapse(state.nation)
    if reason is not None:
        _collapse(state, reason, events)
        return
    _set_phase(state, PHASE_WAITING, events)


# ===== Timeouts =====

def _handle_timeout_expired(
    state: RoomState,
    action: Action,
    defs: Definitions,
) -> tuple[RoomState, list[GameEvent]]:
    """
    Fairness timeout for the phase it was scheduled in. Stale timeouts are
    rejected so a late timer can never act on a later phase.

    waiting / deliberating: the active player is marked AFK and the turn is skipped
    reviewing: players not yet ready are treated as ready
    voting: missing voters are recorded as abstaining and marked AFK
    showingResults: outstanding acknowledgements are dropped
    crisis: the current round closes
    """
    payload = action.payload
    if state.status != STATUS_PLAYING:
        raise StateConflictError("Timeout ignored: game is not in progress")
    if payload.get("phase") != state.phase or payload.get("turn_number") != state.turn_number:
        raise StateConflictError("Stale timeout")
    if payload.get("phase_seq") is not None and payload.get("phase_seq") != state.phase_seq:
        raise StateConflictError("Stale timeout")

    events: list[GameEvent] = []
    phase = state.phase

    if phase in (PHASE_WAITING, PHASE_DELIBERATING):
        active_id = state.active_player_id
        affected = [active_id]
        events.append(timeout_applied(phase, state.turn_number, affected))
        state.players[active_id].is_afk = True
        events.append(player_afk(active_id))
        events.append(turn_skipped(state.turn_number, active_id, f"{phase}_timeout"))
        # No vote this turn, so a deal bound to it can never be judged
        events.extend(deal_ledger.withdraw_unvoted(state, "turn_skipped"))
        _start_next_turn(state, events)

    elif phase == PHASE_REVIEWING:
        affected = _pending_reviewers(state)
        events.append(timeout_applied(phase, state.turn_number, affected))
        state.ready_players.extend(affected)
        _set_phase(state, PHASE_DELIBERATING, events)

    elif phase == PHASE_VOTING:
        affected = _pending_voters(state)
        events.append(timeout_applied(phase, state.turn_number, affected))
        for pid in affected:
            state.votes[pid] = Vote(player_id=pid, choice=VOTE_ABSTAIN, timestamp=action.timestamp)
            state.players[pid].is_afk = True
            events.append(player_afk(pid))
        _resolve_turn(state, defs, events)

    elif phase == PHASE_SHOWING_RESULTS:
        affected = list(state.pending_acks)
        events.append(timeout_applied(phase, state.turn_number, affected))
        state.pending_acks = []
        _start_next_turn(state, events)

    elif phase == PHASE_CRISIS:
        affected = _pending_crisis_players(state)
        events.append(timeout_applied(phase, state.turn_number, affected))
        _close_crisis_round(state, defs, events)

    else:
        raise StateConflictError(f"No timeout applies in phase '{phase}'")

    return state, events


_HANDLERS = {
    JOIN_ROOM: _handle_join_room,
    SELECT_IDEOLOGY: _handle_select_ideology,
    START_GAME: _handle_start_game,
    PLAYER_DISCONNECTED: _handle_player_disconnected,
    SEND_CHAT_MESSAGE: _handle_send_chat_message,
    ROLL_DICE: _handle_roll_dice,
    MARK_READY: _handle_mark_ready,
    SELECT_OPTION: _handle_select_option,
    PROPOSE_DEAL: _handle_propose_deal,
    RESPOND_DEAL: _handle_respond_deal,
    CAST_VOTE: _handle_cast_vote,
    ACKNOWLEDGE_RESULTS: _handle_acknowledge_results,
    CONTRIBUTE_TO_CRISIS: _handle_contribute_to_crisis,
    TIMEOUT_EXPIRED: _handle_timeout_expired,
}
