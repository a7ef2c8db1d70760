from __future__ import annotations
import argparse
import logging
import sys
from datetime import timedelta

import config
from db import utcnow
from errors import StoreError
from payloads import DivineResult, GameConfig, KillResult, NightActionResult
from security import generate_game_id, generate_token
from store import Store

logger = logging.getLogger("seed")

SAMPLE_CONFIG = GameConfig.model_validate({
    "player_count": 5,
    "roles": {"villager": 2, "fortune_teller": 1, "werewolf": 1, "madman": 1},
    "timeouts": {"day_discussion": 300, "day_voting": 60, "night_action": 120, "night_consultation": 180},
    "limits": {"day_speaks_per_player": 5, "night_werewolf_speaks": 10},
})

ANIMAL_NAMES = ["Bear", "Fox", "Wolf", "Rabbit", "Eagle", "Tiger", "Lion", "Deer", "Owl", "Snake"]
SAMPLE_ROLES = ["villager", "villager", "fortune_teller", "werewolf", "madman"]


def seed(store: Store) -> str:
    """Create one finished-night sample game and return its id."""
    game_id = generate_game_id()
    store.games.create(id=game_id, game_config=SAMPLE_CONFIG)
    logger.info("Creating game: %s", game_id)

    players = {}
    for name, role in zip(ANIMAL_NAMES, SAMPLE_ROLES):
        players[role] = p = store.players.create(game_id=game_id, name=name, token=generate_token(), role=role)
        logger.info("Created player: %s (%s)", p.name, p.role)

    store.messages.create(game_id, "Bear", "おはようございます。昨夜は平和でしたね。", "day", 1, phase_detail="discussion")
    store.messages.create(game_id, "Fox", "誰か怪しい人はいませんか？", "day", 1, phase_detail="discussion")
    store.messages.create(game_id, "Wolf", "今夜は誰を襲いましょうか？", "night", 1,
                          target="werewolf", phase_detail="consultation")

    divine = DivineResult(target="Wolf", result="werewolf")
    store.actions.record(game_id, players["fortune_teller"].token, "divine", 1, "night", "Wolf", divine)
    store.actions.record(game_id, players["werewolf"].token, "kill", 1, "night", "Rabbit", KillResult(target="Rabbit"))

    now = utcnow()
    night = store.phase_history.start_phase(game_id, "night_action", 1, now - timedelta(hours=1))
    store.phase_history.end_phase(night.id, now, NightActionResult(killed="Rabbit", divine_results=[divine]))
    return game_id


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed a sample game")
    parser.add_argument("--database-url", default=config.DATABASE_URL)
    parser.add_argument("--migrations", default=config.MIGRATIONS_PATH)
    args = parser.parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL, format="%(message)s")

    try:
        store = Store.open(args.database_url, args.migrations)
    except StoreError as exc:
        logger.error("Seeding failed: %s", exc)
        return 1
    try:
        game_id = seed(store)
    except StoreError as exc:
        logger.error("Seeding failed: %s", exc)
        return 1
    finally:
        store.close()
    logger.info("Database seeding completed, game id: %s", game_id)
    return 0


if __name__ == "__main__":
    sys.exit(main())
