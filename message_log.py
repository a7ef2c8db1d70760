from __future__ import annotations
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func

from db import Database
from models import Message, MESSAGE_PHASES, MESSAGE_TARGETS


class MessageLog:
    """Append-only chat log."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, game_id: str, player_name: str, message: str, phase: str, day_count: int,
               target: str = "all", phase_detail: Optional[str] = None) -> Message:
        m = Message(game_id=game_id, player_name=player_name, message=message, phase=phase,
                    phase_detail=phase_detail, target=target, day_count=day_count)
        with self.db.session() as s: s.add(m)
        return m

    def find_by_id(self, id: int) -> Optional[Message]:
        with self.db.session() as s: return s.get(Message, id)

    def _find(self, game_id: str, day: Optional[int] = None, **filters) -> List[Message]:
        with self.db.session() as s:
            q = s.query(Message).filter_by(game_id=game_id, **filters)
            if day is not None: q = q.filter(Message.day_count == day)
            return q.order_by(Message.created_at, Message.id).all()

    def find_by_game_id(self, game_id: str) -> List[Message]: return self._find(game_id)

    def find_by_game_id_and_phase(self, game_id: str, phase: str, day: Optional[int] = None) -> List[Message]:
        return self._find(game_id, day, phase=phase)

    def find_by_game_id_and_target(self, game_id: str, target: str, phase: Optional[str] = None,
                                   day: Optional[int] = None) -> List[Message]:
        if phase is None: return self._find(game_id, day, target=target)
        return self._find(game_id, day, target=target, phase=phase)

    def find_by_player(self, game_id: str, player_name: str) -> List[Message]:
        return self._find(game_id, player_name=player_name)

    def find_by_day(self, game_id: str, day: int) -> List[Message]: return self._find(game_id, day)

    def find_public_messages(self, game_id: str, day: Optional[int] = None) -> List[Message]:
        return self.find_by_game_id_and_target(game_id, "all", "day", day)

    def find_werewolf_messages(self, game_id: str, day: Optional[int] = None) -> List[Message]:
        return self.find_by_game_id_and_target(game_id, "werewolf", "night", day)

    def find_since(self, game_id: str, since: datetime) -> List[Message]:
        """Messages strictly after ``since``, for incremental polling."""
        with self.db.session() as s:
            return (s.query(Message).filter(Message.game_id == game_id, Message.created_at > since)
                    .order_by(Message.created_at, Message.id).all())

    def find_recent(self, game_id: str, limit: int = 50) -> List[Message]:
        with self.db.session() as s:
            rows = (s.query(Message).filter_by(game_id=game_id)
                    .order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all())
        return list(reversed(rows))

    def count_player_messages_in_phase(self, game_id: str, player_name: str, phase: str, day: int,
                                       target: Optional[str] = None) -> int:
        with self.db.session() as s:
            q = s.query(func.count(Message.id)).filter(
                Message.game_id == game_id, Message.player_name == player_name,
                Message.phase == phase, Message.day_count == day)
            if target is not None: q = q.filter(Message.target == target)
            return q.scalar()

    def get_werewolf_consultation_count(self, game_id: str, day: int) -> int:
        with self.db.session() as s:
            return s.query(func.count(Message.id)).filter(
                Message.game_id == game_id, Message.phase == "night",
                Message.target == "werewolf", Message.day_count == day).scalar()

    def get_message_stats(self, game_id: str) -> Dict:
        with self.db.session() as s:
            def grouped(col):
                return s.query(col, func.count(Message.id)).filter(Message.game_id == game_id).group_by(col).all()
            total = s.query(func.count(Message.id)).filter(Message.game_id == game_id).scalar()
            by_phase = dict.fromkeys(MESSAGE_PHASES, 0)
            by_phase.update(grouped(Message.phase))
            by_target = dict.fromkeys(MESSAGE_TARGETS, 0)
            by_target.update(grouped(Message.target))
            by_player = dict(grouped(Message.player_name))
        return {"total": total, "by_phase": by_phase, "by_target": by_target, "by_player": by_player}

    def delete(self, id: int) -> bool:
        with self.db.session() as s: n = s.query(Message).filter_by(id=id).delete()
        return n > 0

    def delete_by_game_id(self, game_id: str) -> int:
        with self.db.session() as s: return s.query(Message).filter_by(game_id=game_id).delete()
