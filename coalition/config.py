"""
Single place for default game/session configuration.
Every value can be overridden with a COALITION_<NAME> environment variable,
e.g. COALITION_TRACK_LENGTH=20.
"""

import os
from dataclasses import dataclass, fields


def _env_int(name: str, default: int) -> int:
    var = f"COALITION_{name.upper()}"
    raw = os.environ.get(var)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{var} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class GameSettings:
    min_players: int = 3
    max_players: int = 5
    track_length: int = 35
    starting_influence: int = 5
    starting_tokens: int = 3
    starting_stability: int = 10
    starting_budget: int = 8

    # Fairness timeouts (seconds) for phases that wait on players
    roll_timeout: int = 60
    review_timeout: int = 60
    deliberation_timeout: int = 180
    vote_timeout: int = 120
    results_timeout: int = 30
    crisis_round_timeout: int = 60

    crisis_duration: int = 2  # rounds before an unmet crisis fails
    crisis_cooldown_turns: int = 3
    random_crisis_min_turn: int = 10

    max_deal_turns: int = 5
    max_chat_length: int = 500

    session_idle_seconds: int = 2 * 60 * 60

    def to_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_settings() -> GameSettings:
    """Defaults overlaid with COALITION_* environment overrides."""
    defaults = GameSettings()
    return GameSettings(**{
        f.name: _env_int(f.name, getattr(defaults, f.name)) for f in fields(GameSettings)
    })


DEFAULT_SETTINGS = load_settings()

SEAT_TOKEN_SECRET = os.environ.get("SEAT_TOKEN_SECRET", "change-me-in-production-use-env")
SEAT_TOKEN_TTL_HOURS = _env_int("seat_token_ttl_hours", 12)
