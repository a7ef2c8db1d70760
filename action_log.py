from __future__ import annotations
import logging
from collections import Counter
from typing import Dict, List, Optional

from sqlalchemy import func

from db import Database
from errors import ConflictError
from models import Action, ACTION_TYPES, MESSAGE_PHASES
from payloads import to_action_result

logger = logging.getLogger(__name__)


class ActionLog:
    """Append-only record of divine/kill/vote/speak actions.

    The idempotency key is (game, player, type, day, phase): at most one
    ``success=True`` row may exist for it, except for ``speak`` which is
    limited by count. The database enforces this with a partial unique index,
    so a losing concurrent insert raises ConflictError instead of slipping in.
    ``record`` wraps the check-then-insert for callers that prefer ``None``.
    """

    def __init__(self, db: Database):
        self.db = db

    def create(self, game_id: str, player_token: str, action_type: str, day_count: int, phase: str,
               target_player: Optional[str] = None, result=None, success: bool = True) -> Action:
        a = Action(game_id=game_id, player_token=player_token, action_type=action_type,
                   target_player=target_player, result=to_action_result(result),
                   day_count=day_count, phase=phase, success=success)
        with self.db.session() as s: s.add(a)
        logger.debug("action %s by %s on day %s/%s (success=%s)", action_type, player_token, day_count, phase, success)
        return a

    def record(self, game_id: str, player_token: str, action_type: str, day_count: int, phase: str,
               target_player: Optional[str] = None, result=None) -> Optional[Action]:
        """Insert a successful action unless one already exists for its key."""
        if self.has_player_acted(game_id, player_token, action_type, day_count, phase): return None
        try:
            return self.create(game_id, player_token, action_type, day_count, phase, target_player, result)
        except ConflictError:
            # 并发写入时另一方先落库
            if self.has_player_acted(game_id, player_token, action_type, day_count, phase): return None
            raise

    def find_by_id(self, id: int) -> Optional[Action]:
        with self.db.session() as s: return s.get(Action, id)

    def _find(self, *criteria, day: Optional[int] = None, success: Optional[bool] = None) -> List[Action]:
        with self.db.session() as s:
            q = s.query(Action).filter(*criteria)
            if day is not None: q = q.filter(Action.day_count == day)
            if success is not None: q = q.filter(Action.success == success)
            return q.order_by(Action.created_at, Action.id).all()

    def find_by_game_id(self, game_id: str) -> List[Action]:
        return self._find(Action.game_id == game_id)

    def find_by_player_token(self, player_token: str) -> List[Action]:
        return self._find(Action.player_token == player_token)

    def find_by_game_and_player(self, game_id: str, player_token: str) -> List[Action]:
        return self._find(Action.game_id == game_id, Action.player_token == player_token)

    def find_by_action_type(self, game_id: str, action_type: str, day: Optional[int] = None) -> List[Action]:
        return self._find(Action.game_id == game_id, Action.action_type == action_type, day=day)

    def find_by_phase(self, game_id: str, phase: str, day: Optional[int] = None) -> List[Action]:
        return self._find(Action.game_id == game_id, Action.phase == phase, day=day)

    def find_by_day(self, game_id: str, day: int) -> List[Action]:
        return self._find(Action.game_id == game_id, day=day)

    def _by_type_and_player(self, game_id, action_type, player_token, day):
        criteria = [Action.game_id == game_id, Action.action_type == action_type]
        if player_token: criteria.append(Action.player_token == player_token)
        return self._find(*criteria, day=day)

    def find_divine_actions(self, game_id: str, player_token: Optional[str] = None, day: Optional[int] = None) -> List[Action]:
        return self._by_type_and_player(game_id, "divine", player_token, day)

    def find_kill_actions(self, game_id: str, day: Optional[int] = None) -> List[Action]:
        return self.find_by_action_type(game_id, "kill", day)

    def find_vote_actions(self, game_id: str, day: Optional[int] = None) -> List[Action]:
        return self.find_by_action_type(game_id, "vote", day)

    def find_speak_actions(self, game_id: str, player_token: Optional[str] = None, day: Optional[int] = None) -> List[Action]:
        return self._by_type_and_player(game_id, "speak", player_token, day)

    def get_divine_results(self, game_id: str, player_token: str) -> List[Action]:
        return self.find_divine_actions(game_id, player_token)

    def has_player_acted(self, game_id: str, player_token: str, action_type: str, day: int, phase: str) -> bool:
        with self.db.session() as s:
            q = s.query(Action).filter_by(game_id=game_id, player_token=player_token, action_type=action_type,
                                          day_count=day, phase=phase, success=True)
            return bool(s.query(q.exists()).scalar())

    def get_vote_results(self, game_id: str, day: int) -> Dict[str, List[str]]:
        """target -> voter tokens, successful votes only. Tie-breaking is the caller's call."""
        results: Dict[str, List[str]] = {}
        for a in self._find(Action.game_id == game_id, Action.action_type == "vote", day=day, success=True):
            if a.target_player: results.setdefault(a.target_player, []).append(a.player_token)
        return results

    def get_vote_counts(self, game_id: str, day: int) -> Dict[str, int]:
        tally = Counter({target: len(voters) for target, voters in self.get_vote_results(game_id, day).items()})
        return dict(tally.most_common())

    def get_kill_target(self, game_id: str, day: int) -> Optional[str]:
        kills = self._find(Action.game_id == game_id, Action.action_type == "kill", day=day, success=True)
        return kills[0].target_player if kills else None

    def count_actions(self, game_id: str, action_type: str, day: Optional[int] = None) -> int:
        with self.db.session() as s:
            q = s.query(func.count(Action.id)).filter(Action.game_id == game_id, Action.action_type == action_type)
            if day is not None: q = q.filter(Action.day_count == day)
            return q.scalar()

    def get_action_stats(self, game_id: str) -> Dict:
        with self.db.session() as s:
            def grouped(col):
                return s.query(col, func.count(Action.id)).filter(Action.game_id == game_id).group_by(col).all()
            total = s.query(func.count(Action.id)).filter(Action.game_id == game_id).scalar()
            by_type = dict.fromkeys(ACTION_TYPES, 0)
            by_type.update(grouped(Action.action_type))
            by_phase = dict.fromkeys(MESSAGE_PHASES, 0)
            by_phase.update(grouped(Action.phase))
            by_day = dict(grouped(Action.day_count))
        return {"total": total, "by_type": by_type, "by_phase": by_phase, "by_day": by_day}

    def delete(self, id: int) -> bool:
        with self.db.session() as s: n = s.query(Action).filter_by(id=id).delete()
        return n > 0

    def delete_by_game_id(self, game_id: str) -> int:
        with self.db.session() as s: return s.query(Action).filter_by(game_id=game_id).delete()
