"""
Shared fixtures: static definitions and a Table helper that drives a
started room through the reducer.
"""

import pytest

from coalition.config import GameSettings
from coalition.engine.actions import (
    acknowledge_results,
    cast_vote,
    join_room,
    mark_ready,
    roll_dice,
    select_ideology,
    select_option,
    start_game,
)
from coalition.engine.definitions import load_static_definitions
from coalition.engine.reducer import apply_action
from coalition.engine.utils import initialize_room_state

PLAYERS = [
    ("p1", "Alice", "progressive"),
    ("p2", "Bob", "conservative"),
    ("p3", "Cara", "populist"),
]


class Table:
    """A room plus shortcuts for the usual turn steps. Every call goes through apply_action."""

    def __init__(self, defs, state):
        self.defs = defs
        self.state = state
        self.events = []

    def do(self, action):
        self.state, self.events = apply_action(self.state, action, self.defs)
        return self.events

    def event_types(self):
        return [e.type for e in self.events]

    def roll(self, roll=4, card_id="early_001", crisis_roll=None):
        return self.do(roll_dice(self.state.active_player_id, roll, card_id, crisis_roll))

    def review(self):
        """Mark every pending reviewer ready; the last one opens deliberation."""
        pending = [
            pid for pid in self.state.connected_player_ids()
            if pid != self.state.active_player_id and pid not in self.state.ready_players
        ]
        for pid in pending:
            self.do(mark_ready(pid))

    def select(self, option_id="A"):
        return self.do(select_option(self.state.active_player_id, option_id))

    def vote(self, choices):
        """choices: player_id -> choice or (choice, influence_spent), applied in order."""
        for pid, choice in choices.items():
            if isinstance(choice, tuple):
                self.do(cast_vote(pid, choice[0], influence_spent=choice[1]))
            else:
                self.do(cast_vote(pid, choice))
        return self.events

    def acknowledge(self):
        for pid in list(self.state.pending_acks):
            self.do(acknowledge_results(pid))

    def play_turn(self, choices, roll=4, card_id="early_001", option_id="A"):
        self.roll(roll, card_id)
        self.review()
        self.select(option_id)
        return self.vote(choices)


def new_room(defs, players=PLAYERS, settings=None, start=True):
    state = initialize_room_state("TEST01", settings)
    for player_id, name, ideology in players:
        state, _ = apply_action(state, join_room(player_id, name), defs)
        if ideology:
            state, _ = apply_action(state, select_ideology(player_id, ideology), defs)
    if start:
        state, _ = apply_action(state, start_game(players[0][0]), defs)
    return state


@pytest.fixture(scope="session")
def defs():
    return load_static_definitions()


@pytest.fixture
def settings():
    return GameSettings()


@pytest.fixture
def lobby(defs):
    """Three seated players with ideologies, game not started."""
    return new_room(defs, start=False)


@pytest.fixture
def table(defs):
    """Started three-player room at turn 1, waiting for p1 to roll."""
    return Table(defs, new_room(defs))


@pytest.fixture
def make_table(defs):
    def _make(players=PLAYERS, settings=None):
        return Table(defs, new_room(defs, players=players, settings=settings))
    return _make
