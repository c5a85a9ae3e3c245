"""
Game sessions: one authoritative reducer instance per room.

A GameSession owns the current RoomState and applies intents one at a time
under a lock, so concurrent connections can never interleave mutations.
Randomness (dice, card draw, crisis roll) is decided here and written into
the roll_dice intent before it reaches the reducer.

Fairness timeouts are not timers that mutate state: after every accepted
intent the session records a deadline for the current phase, and tick()
submits a timeout_expired intent through the same path as player intents
once the deadline passes.
"""

import logging
import random
import secrets
import string
import threading
import time
from dataclasses import replace
from typing import Any, Callable

from coalition.config import GameSettings, DEFAULT_SETTINGS
from coalition.engine.actions import Action, ROLL_DICE, SYSTEM_ACTIONS, timeout_expired
from coalition.engine.definitions import Definitions
from coalition.engine.errors import EngineError, EngineHaltedError, StateConflictError
from coalition.engine.events import GameEvent, session_failed
from coalition.engine.queries import (
    ValidationResult,
    deal_log_payload,
    room_state_payload,
    turn_history_payload,
    validate_action,
)
from coalition.engine.reducer import apply_action
from coalition.engine.state import (
    PHASE_CRISIS,
    PHASE_DELIBERATING,
    PHASE_REVIEWING,
    PHASE_SHOWING_RESULTS,
    PHASE_VOTING,
    PHASE_WAITING,
    STATUS_PLAYING,
    RoomState,
)
from coalition.engine.utils import draw_card_id, initialize_room_state, roll_die, roll_percent

logger = logging.getLogger(__name__)

ROOM_CODE_CHARS = string.ascii_uppercase + string.digits
ROOM_CODE_LENGTH = 6

# Finished or halted rooms linger this long so clients can read the outcome
ENDED_ROOM_GRACE_SECONDS = 10 * 60


def phase_timeout_seconds(settings: GameSettings, phase: str) -> int | None:
    return {
        PHASE_WAITING: settings.roll_timeout,
        PHASE_REVIEWING: settings.review_timeout,
        PHASE_DELIBERATING: settings.deliberation_timeout,
        PHASE_VOTING: settings.vote_timeout,
        PHASE_SHOWING_RESULTS: settings.results_timeout,
        PHASE_CRISIS: settings.crisis_round_timeout,
    }.get(phase)


def check_invariants(state: RoomState, previous: RoomState) -> None:
    """
    Raise EngineHaltedError if an accepted action produced an impossible state.
    """
    if previous.is_over and state.status != previous.status:
        raise EngineHaltedError(f"Terminal status changed from {previous.status} to {state.status}")
    for pid, player in state.players.items():
        if player.influence < 0:
            raise EngineHaltedError(f"Negative influence for {pid}: {player.influence}")
        if player.own_tokens < 0:
            raise EngineHaltedError(f"Negative tokens for {pid}: {player.own_tokens}")
        if not 0 <= player.position <= state.settings.track_length:
            raise EngineHaltedError(f"Position out of range for {pid}: {player.position}")
        before = previous.players.get(pid)
        if before is not None and player.position < before.position:
            raise EngineHaltedError(f"Position regressed for {pid}: {before.position} -> {player.position}")
    if state.active_crisis is not None:
        for pid, amount in state.active_crisis.contributions.items():
            if amount < 0:
                raise EngineHaltedError(f"Negative crisis contribution for {pid}")
    if state.status == STATUS_PLAYING and state.active_player_id not in state.players:
        raise EngineHaltedError(f"Active player {state.active_player_id} is not seated")


class GameSession:
    """Authoritative state for one room plus its deferred fairness timeout."""

    def __init__(
        self,
        room_id: str,
        defs: Definitions,
        settings: GameSettings | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.room_id = room_id
        self.defs = defs
        self.settings = settings or DEFAULT_SETTINGS
        self.state = initialize_room_state(room_id, self.settings)
        self.halted = False
        self._rng = rng or random.Random()
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self.created_at = self._clock()
        self.last_activity = self.created_at
        self._timeout_key: tuple[str, int, int] | None = None
        self.deadline: float | None = None

    def now(self) -> float:
        return self._clock()

    # ===== Intents =====

    def submit(self, action: Action) -> list[GameEvent]:
        """
        Apply one intent. Returns the events it produced.

        Raises:
            EngineError: intent rejected, state unchanged
            EngineHaltedError: invariant violated; the session is now halted
        """
        with self._lock:
            return self._apply(action)

    def tick(self, now: float | None = None) -> list[GameEvent]:
        """Submit the pending fairness timeout if its deadline has passed."""
        with self._lock:
            now = self._clock() if now is None else now
            if self.halted or self.deadline is None or now < self.deadline:
                return []
            state = self.state
            action = timeout_expired(state.phase, state.turn_number, state.phase_seq)
            try:
                return self._apply(replace(action, timestamp=now), now)
            except EngineError as e:
                logger.debug("room %s: timeout dropped: %s", self.room_id, e)
                self.deadline = None
                return []

    def _apply(self, action: Action, now: float | None = None) -> list[GameEvent]:
        if self.halted:
            raise StateConflictError("This game session has stopped")

        now = self._clock() if now is None else now
        if not action.timestamp:
            action = replace(action, timestamp=now)
        action = self._with_randomness(action)

        previous = self.state
        try:
            new_state, events = apply_action(previous, action, self.defs)
        except EngineError as e:
            logger.info("room %s: rejected %s from %s: %s", self.room_id, action.type, action.player_id, e)
            raise

        try:
            check_invariants(new_state, previous)
        except EngineHaltedError:
            self.halted = True
            self.deadline = None
            logger.exception("room %s: halted after %s from %s", self.room_id, action.type, action.player_id)
            raise

        self.state = new_state
        if action.type not in SYSTEM_ACTIONS:
            self.last_activity = now
        self._schedule_timeout(now)
        logger.debug("room %s: applied %s from %s -> %s", self.room_id, action.type, action.player_id, new_state.phase)
        return events

    def _with_randomness(self, action: Action) -> Action:
        """Fill in dice, card and crisis roll for a bare roll_dice intent."""
        if action.type != ROLL_DICE or "roll" in action.payload:
            return action
        payload = dict(action.payload)
        payload["roll"] = roll_die(self._rng)
        payload["card_id"] = draw_card_id(self.state, self.defs, self._rng)
        payload["crisis_roll"] = roll_percent(self._rng)
        return replace(action, payload=payload)

    def _schedule_timeout(self, now: float) -> None:
        """Keep the deadline while the phase entry is unchanged; start a new one otherwise."""
        state = self.state
        seconds = phase_timeout_seconds(self.settings, state.phase)
        if state.status != STATUS_PLAYING or seconds is None:
            self._timeout_key = None
            self.deadline = None
            return
        key = (state.phase, state.turn_number, state.phase_seq)
        if key != self._timeout_key:
            self._timeout_key = key
            self.deadline = now + seconds

    def failure_event(self) -> GameEvent:
        return session_failed(self.room_id)

    # ===== Reads =====

    def snapshot(self, viewer_id: str | None = None) -> dict[str, Any]:
        with self._lock:
            payload = room_state_payload(self.state, viewer_id, self.defs)
            payload["phase_deadline"] = self.deadline
            payload["halted"] = self.halted
            return payload

    def history(self) -> dict[str, Any]:
        """Transparency log: every resolved turn and every deal on record."""
        with self._lock:
            return {
                "turns": turn_history_payload(self.state),
                "deals": deal_log_payload(self.state),
            }

    def validate(self, action: Action) -> ValidationResult:
        """Dry run against the current state; nothing is applied."""
        with self._lock:
            if self.halted:
                return ValidationResult(False, "This game session has stopped", StateConflictError.code)
            return validate_action(self.state, self._with_randomness(action), self.defs)

    def is_expired(self, now: float) -> bool:
        idle = now - self.last_activity
        if self.halted or self.state.is_over:
            return idle >= ENDED_ROOM_GRACE_SECONDS
        return idle >= self.settings.session_idle_seconds


class SessionRegistry:
    """Active sessions keyed by room id. Create on room creation, destroy on completion or idle expiry."""

    def __init__(
        self,
        defs: Definitions,
        settings: GameSettings | None = None,
        rng_factory: Callable[[], random.Random] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.defs = defs
        self.settings = settings or DEFAULT_SETTINGS
        self._rng_factory = rng_factory or random.Random
        self._clock = clock or time.time
        self._sessions: dict[str, GameSession] = {}
        self._lock = threading.Lock()

    def _generate_room_id(self) -> str:
        for _ in range(20):
            code = "".join(secrets.choice(ROOM_CODE_CHARS) for _ in range(ROOM_CODE_LENGTH))
            if code not in self._sessions:
                return code
        raise RuntimeError("Could not generate a unique room id")

    def create(self, room_id: str | None = None) -> GameSession:
        with self._lock:
            room_id = room_id or self._generate_room_id()
            if room_id in self._sessions:
                raise StateConflictError(f"Room {room_id} already exists")
            session = GameSession(
                room_id,
                self.defs,
                settings=self.settings,
                rng=self._rng_factory(),
                clock=self._clock,
            )
            self._sessions[room_id] = session
        logger.info("room %s: created", room_id)
        return session

    def get(self, room_id: str) -> GameSession | None:
        with self._lock:
            return self._sessions.get(room_id)

    def destroy(self, room_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(room_id, None)
        if removed is not None:
            logger.info("room %s: destroyed", room_id)
        return removed is not None

    def room_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def tick_all(self, now: float | None = None) -> dict[str, list[GameEvent]]:
        """Fire due timeouts in every session. Returns events per room that changed."""
        now = self._clock() if now is None else now
        with self._lock:
            sessions = list(self._sessions.values())
        fired = {}
        for session in sessions:
            try:
                events = session.tick(now)
            except EngineHaltedError:
                events = [session.failure_event()]
            if events:
                fired[session.room_id] = events
        return fired

    def expire_idle(self, now: float | None = None) -> list[str]:
        """Destroy sessions idle past the expiry (shorter for ended games). Returns removed ids."""
        now = self._clock() if now is None else now
        with self._lock:
            expired = [rid for rid, s in self._sessions.items() if s.is_expired(now)]
            for rid in expired:
                del self._sessions[rid]
        for rid in expired:
            logger.info("room %s: expired", rid)
        return expired
