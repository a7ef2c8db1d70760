from __future__ import annotations
import logging
from typing import Dict, List, Optional

from sqlalchemy import func

from db import Database, UNSET, present
from models import Player, ROLES, TEAMS, team_of

logger = logging.getLogger(__name__)


class PlayerStore:
    def __init__(self, db: Database):
        self.db = db

    def create(self, game_id: str, name: str, token: str, role: str, status: str = "alive",
               death_day: Optional[int] = None, death_cause: Optional[str] = None) -> Player:
        p = Player(game_id=game_id, name=name, token=token, role=role, status=status,
                   death_day=death_day, death_cause=death_cause)
        with self.db.session() as s:
            s.add(p)
        logger.debug("player %s joined game %s as %s", name, game_id, role)
        return p

    def find_by_id(self, id: int) -> Optional[Player]:
        with self.db.session() as s: return s.get(Player, id)

    def find_by_token(self, token: str) -> Optional[Player]:
        with self.db.session() as s: return s.query(Player).filter_by(token=token).first()

    def _list(self, **filters) -> List[Player]:
        with self.db.session() as s:
            return s.query(Player).filter_by(**filters).order_by(Player.created_at, Player.id).all()

    def find_by_game_id(self, game_id: str) -> List[Player]: return self._list(game_id=game_id)
    def find_by_game_id_and_role(self, game_id: str, role: str) -> List[Player]: return self._list(game_id=game_id, role=role)
    def find_alive_players_by_game_id(self, game_id: str) -> List[Player]: return self._list(game_id=game_id, status="alive")
    def find_dead_players_by_game_id(self, game_id: str) -> List[Player]: return self._list(game_id=game_id, status="dead")

    def find_by_game_id_and_name(self, game_id: str, name: str) -> Optional[Player]:
        with self.db.session() as s: return s.query(Player).filter_by(game_id=game_id, name=name).first()

    def update(self, token: str, *, name=UNSET, role=UNSET) -> Optional[Player]:
        """Patch name/role. Deaths go through ``kill_player`` only."""
        changes = present(name=name, role=role)
        with self.db.session() as s:
            p = s.query(Player).filter_by(token=token).first()
            if not p: return None
            for k, v in changes.items(): setattr(p, k, v)
        return p

    def kill_player(self, token: str, day: int, cause: str) -> bool:
        """alive -> dead, once. Returns False for unknown or already dead players."""
        with self.db.session() as s:
            n = s.query(Player).filter_by(token=token, status="alive").update(
                {"status": "dead", "death_day": day, "death_cause": cause})
        if n: logger.info("player %s died on day %s (%s)", token, day, cause)
        return n > 0

    def delete(self, token: str) -> bool:
        with self.db.session() as s: n = s.query(Player).filter_by(token=token).delete()
        return n > 0

    def delete_by_game_id(self, game_id: str) -> int:
        with self.db.session() as s: return s.query(Player).filter_by(game_id=game_id).delete()

    def get_role_counts(self, game_id: str) -> Dict[str, int]:
        counts = dict.fromkeys(ROLES, 0)
        with self.db.session() as s:
            rows = (s.query(Player.role, func.count(Player.id))
                    .filter(Player.game_id == game_id).group_by(Player.role).all())
        for role, n in rows: counts[role] = n
        return counts

    def get_alive_team_counts(self, game_id: str) -> Dict[str, int]:
        counts = dict.fromkeys(TEAMS, 0)
        with self.db.session() as s:
            rows = (s.query(Player.role, func.count(Player.id))
                    .filter(Player.game_id == game_id, Player.status == "alive").group_by(Player.role).all())
        for role, n in rows: counts[team_of(role)] += n
        return counts

    def player_exists_in_game(self, game_id: str, name: str) -> bool:
        with self.db.session() as s:
            return bool(s.query(s.query(Player).filter_by(game_id=game_id, name=name).exists()).scalar())

    def get_werewolves(self, game_id: str) -> List[Player]:
        return self.find_by_game_id_and_role(game_id, "werewolf")

    def get_players_dead_on_day(self, game_id: str, day: int) -> List[Player]:
        return self._list(game_id=game_id, death_day=day)
