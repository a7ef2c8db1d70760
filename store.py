from __future__ import annotations
import logging

from action_log import ActionLog
from db import Database
from game_store import GameStore
from message_log import MessageLog
from migrator import Migrator
from models import Action, Game, Message, PhaseHistory, Player
from phase_history import PhaseHistoryStore
from player_store import PlayerStore

logger = logging.getLogger(__name__)


class Store:
    """All five data-access components over one database.

    Build it once at startup and hand it to whatever drives the games;
    there is no module-level connection.
    """

    def __init__(self, db: Database):
        self.db = db
        self.games = GameStore(db)
        self.players = PlayerStore(db)
        self.messages = MessageLog(db)
        self.actions = ActionLog(db)
        self.phase_history = PhaseHistoryStore(db)

    @classmethod
    def open(cls, url: str, migrations_path: str, echo: bool = False) -> "Store":
        db = Database(url, echo=echo)
        try:
            applied = Migrator(db.engine, migrations_path).run()
        except Exception:
            db.dispose()
            raise
        if applied: logger.info("applied %d migration(s)", len(applied))
        return cls(db)

    def purge_game(self, game_id: str) -> bool:
        """Delete a game and everything it owns in one transaction."""
        with self.db.session() as s:
            for model in (Action, Message, PhaseHistory, Player):
                s.query(model).filter_by(game_id=game_id).delete(synchronize_session=False)
            n = s.query(Game).filter_by(id=game_id).delete(synchronize_session=False)
        if n: logger.info("purged game %s", game_id)
        return n > 0

    def ping(self): self.db.ping()
    def close(self): self.db.dispose()
