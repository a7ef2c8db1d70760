from __future__ import annotations
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func

from db import Database, UNSET, present, utcnow
from models import Game, ACTIVE_STATUSES
from payloads import to_game_config

logger = logging.getLogger(__name__)


class GameStore:
    def __init__(self, db: Database):
        self.db = db

    def create(self, id: str, game_config, status: str = "waiting", current_phase: Optional[str] = None,
               day_count: int = 0, phase_start_time: Optional[datetime] = None,
               phase_timeout_seconds: Optional[int] = None, winner_team: Optional[str] = None) -> Game:
        """Insert a new game; a duplicate ``id`` raises ConflictError."""
        now = utcnow()
        game = Game(id=id, status=status, current_phase=current_phase, day_count=day_count,
                    game_config=to_game_config(game_config), phase_start_time=phase_start_time,
                    phase_timeout_seconds=phase_timeout_seconds, winner_team=winner_team,
                    created_at=now, updated_at=now)
        with self.db.session() as s:
            s.add(game)
        logger.debug("created game %s", id)
        return game

    def find_by_id(self, id: str) -> Optional[Game]:
        with self.db.session() as s: return s.get(Game, id)

    def find_all(self) -> List[Game]:
        with self.db.session() as s:
            return s.query(Game).order_by(Game.created_at.desc(), Game.id.desc()).all()

    def find_by_status(self, status: str) -> List[Game]:
        with self.db.session() as s:
            return s.query(Game).filter_by(status=status).order_by(Game.created_at.desc()).all()

    def update(self, id: str, *, status=UNSET, current_phase=UNSET, day_count=UNSET,
               phase_start_time=UNSET, phase_timeout_seconds=UNSET, winner_team=UNSET) -> Optional[Game]:
        """Merge the given fields over the stored game. ``game_config`` is fixed at creation."""
        changes = present(status=status, current_phase=current_phase, day_count=day_count,
                          phase_start_time=phase_start_time, phase_timeout_seconds=phase_timeout_seconds,
                          winner_team=winner_team)
        with self.db.session() as s:
            game = s.get(Game, id)
            if not game: return None
            for k, v in changes.items(): setattr(game, k, v)
            game.updated_at = utcnow()
        return game

    def update_phase(self, id: str, phase: str, start_time: datetime, timeout_seconds: int) -> bool:
        with self.db.session() as s:
            n = s.query(Game).filter_by(id=id).update(
                {"current_phase": phase, "phase_start_time": start_time,
                 "phase_timeout_seconds": timeout_seconds, "updated_at": utcnow()})
        return n > 0

    def increment_day(self, id: str) -> bool:
        with self.db.session() as s:
            n = s.query(Game).filter_by(id=id).update(
                {"day_count": Game.day_count + 1, "updated_at": utcnow()}, synchronize_session=False)
        return n > 0

    def finish_game(self, id: str, winner_team: str) -> bool:
        # 结束时一次性清空阶段字段
        with self.db.session() as s:
            n = s.query(Game).filter_by(id=id).update(
                {"status": "finished", "winner_team": winner_team, "current_phase": None,
                 "phase_start_time": None, "phase_timeout_seconds": None, "updated_at": utcnow()})
        if n: logger.info("game %s finished, winner: %s", id, winner_team)
        return n > 0

    def find_timed_out_games(self) -> List[Game]:
        """Active games whose deadline has passed by the database clock."""
        deadline = func.julianday(Game.phase_start_time) + Game.phase_timeout_seconds / 86400.0
        with self.db.session() as s:
            return (s.query(Game)
                    .filter(Game.status.in_(ACTIVE_STATUSES),
                            Game.phase_start_time.isnot(None),
                            Game.phase_timeout_seconds.isnot(None),
                            deadline <= func.julianday("now"))
                    .order_by(Game.phase_start_time)
                    .all())

    def delete(self, id: str) -> bool:
        with self.db.session() as s:
            n = s.query(Game).filter_by(id=id).delete()
        return n > 0
