"""
Settings defaults and COALITION_* environment overrides.
"""

import pytest

from coalition.config import GameSettings, load_settings


def test_defaults_without_overrides(monkeypatch):
    monkeypatch.delenv("COALITION_TRACK_LENGTH", raising=False)
    assert load_settings().track_length == GameSettings().track_length


def test_env_override(monkeypatch):
    monkeypatch.setenv("COALITION_TRACK_LENGTH", "20")
    monkeypatch.setenv("COALITION_VOTE_TIMEOUT", "45")
    settings = load_settings()
    assert settings.track_length == 20
    assert settings.vote_timeout == 45


def test_invalid_override_is_reported(monkeypatch):
    monkeypatch.setenv("COALITION_VOTE_TIMEOUT", "two minutes")
    with pytest.raises(ValueError, match="COALITION_VOTE_TIMEOUT"):
        load_settings()
