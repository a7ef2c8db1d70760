"""Pytest configuration and fixtures."""

import uuid
from pathlib import Path

import pytest

from payloads import GameConfig
from store import Store

MIGRATIONS = str(Path(__file__).resolve().parent.parent / "migrations")

ROSTER = [
    ("Bear", "villager"),
    ("Fox", "fortune_teller"),
    ("Wolf", "werewolf"),
    ("Rabbit", "villager"),
    ("Eagle", "madman"),
]


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'jinro.db'}"


@pytest.fixture
def store(db_url):
    """A store over a fresh, fully migrated database."""
    s = Store.open(db_url, MIGRATIONS)
    yield s
    s.close()


@pytest.fixture
def game_config():
    return GameConfig.model_validate({
        "player_count": 5,
        "roles": {"villager": 2, "fortune_teller": 1, "werewolf": 1, "madman": 1},
        "timeouts": {"day_discussion": 300, "day_voting": 60, "night_action": 120, "night_consultation": 180},
        "limits": {"day_speaks_per_player": 5, "night_werewolf_speaks": 10},
    })


@pytest.fixture
def game(store, game_config):
    return store.games.create(id=f"test_game_{uuid.uuid4()}", game_config=game_config)


@pytest.fixture
def players(store, game):
    """Five players keyed by name."""
    return {
        name: store.players.create(game_id=game.id, name=name, token=f"token_{name}_{uuid.uuid4().hex}", role=role)
        for name, role in ROSTER
    }
