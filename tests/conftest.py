"""Shared fixtures."""

import pytest

from pipejoin.config import ConfigLoader


@pytest.fixture
def broken_config(monkeypatch):
    """Global config whose environment holds an unknown PIPEJOIN_* section."""
    monkeypatch.setenv("PIPEJOIN_LOG_LEVEL", "debug")
    monkeypatch.setattr(ConfigLoader, "_load_system_config", lambda self: None)
    monkeypatch.setattr(ConfigLoader, "_load_user_config", lambda self: None)
    monkeypatch.setattr("pipejoin.config.loader._loader", ConfigLoader())
