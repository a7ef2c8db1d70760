from __future__ import annotations
import logging
from datetime import datetime
from typing import Dict, List, Optional

from db import Database, UNSET, present
from models import PhaseHistory, PHASE_TYPES
from payloads import to_phase_result

logger = logging.getLogger(__name__)


def _duration(ph: PhaseHistory) -> Optional[int]:
    if ph.ended_at is None: return None
    return round((ph.ended_at - ph.started_at).total_seconds())


class PhaseHistoryStore:
    """Start/end bookkeeping for each phase instance of a game.

    The store does not stop two open rows for the same phase from coexisting;
    callers check ``find_current_phase`` before ``start_phase``.
    """

    def __init__(self, db: Database):
        self.db = db

    def create(self, game_id: str, phase: str, day_count: int, started_at: datetime,
               ended_at: Optional[datetime] = None, phase_results=None) -> PhaseHistory:
        ph = PhaseHistory(game_id=game_id, phase=phase, day_count=day_count, started_at=started_at,
                          ended_at=ended_at, phase_results=to_phase_result(phase_results))
        with self.db.session() as s: s.add(ph)
        return ph

    def start_phase(self, game_id: str, phase: str, day: int, start_time: datetime) -> PhaseHistory:
        ph = self.create(game_id, phase, day, start_time)
        logger.debug("phase %s day %s opened for game %s", phase, day, game_id)
        return ph

    def update(self, id: int, *, ended_at=UNSET, phase_results=UNSET) -> Optional[PhaseHistory]:
        changes = present(ended_at=ended_at, phase_results=phase_results)
        if "phase_results" in changes: changes["phase_results"] = to_phase_result(changes["phase_results"])
        with self.db.session() as s:
            ph = s.get(PhaseHistory, id)
            if not ph: return None
            for k, v in changes.items(): setattr(ph, k, v)
        return ph

    def end_phase(self, id: int, end_time: datetime, results=None) -> bool:
        """Close an open phase. Returns False if it is unknown or already closed."""
        results = to_phase_result(results)
        with self.db.session() as s:
            n = s.query(PhaseHistory).filter(PhaseHistory.id == id, PhaseHistory.ended_at.is_(None)).update(
                {"ended_at": end_time, "phase_results": results}, synchronize_session=False)
        if n: logger.info("phase %s closed at %s", id, end_time)
        return n > 0

    def find_by_id(self, id: int) -> Optional[PhaseHistory]:
        with self.db.session() as s: return s.get(PhaseHistory, id)

    def _find(self, *criteria, order=None) -> List[PhaseHistory]:
        order = order or (PhaseHistory.day_count, PhaseHistory.started_at, PhaseHistory.id)
        with self.db.session() as s:
            return s.query(PhaseHistory).filter(*criteria).order_by(*order).all()

    def find_by_game_id(self, game_id: str) -> List[PhaseHistory]:
        return self._find(PhaseHistory.game_id == game_id)

    def get_game_timeline(self, game_id: str) -> List[PhaseHistory]:
        return self.find_by_game_id(game_id)

    def find_by_game_id_and_day(self, game_id: str, day: int) -> List[PhaseHistory]:
        return self._find(PhaseHistory.game_id == game_id, PhaseHistory.day_count == day)

    def find_by_phase_type(self, game_id: str, phase: str, day: Optional[int] = None) -> List[PhaseHistory]:
        criteria = [PhaseHistory.game_id == game_id, PhaseHistory.phase == phase]
        if day is not None: criteria.append(PhaseHistory.day_count == day)
        return self._find(*criteria, order=(PhaseHistory.started_at, PhaseHistory.id))

    def find_by_day_range(self, game_id: str, start_day: int, end_day: int) -> List[PhaseHistory]:
        return self._find(PhaseHistory.game_id == game_id, PhaseHistory.day_count.between(start_day, end_day))

    def find_current_phase(self, game_id: str) -> Optional[PhaseHistory]:
        with self.db.session() as s:
            return (s.query(PhaseHistory).filter(PhaseHistory.game_id == game_id, PhaseHistory.ended_at.is_(None))
                    .order_by(PhaseHistory.started_at.desc(), PhaseHistory.id.desc()).first())

    def find_latest_completed_phase(self, game_id: str) -> Optional[PhaseHistory]:
        with self.db.session() as s:
            return (s.query(PhaseHistory).filter(PhaseHistory.game_id == game_id, PhaseHistory.ended_at.isnot(None))
                    .order_by(PhaseHistory.ended_at.desc(), PhaseHistory.id.desc()).first())

    def is_phase_completed(self, game_id: str, phase: str, day: int) -> bool:
        with self.db.session() as s:
            q = s.query(PhaseHistory).filter(PhaseHistory.game_id == game_id, PhaseHistory.phase == phase,
                                             PhaseHistory.day_count == day, PhaseHistory.ended_at.isnot(None))
            return bool(s.query(q.exists()).scalar())

    def find_incomplete_phases(self, game_id: Optional[str] = None,
                               started_before: Optional[datetime] = None) -> List[PhaseHistory]:
        """Open phases, optionally only those started before a cutoff (crash recovery sweep)."""
        criteria = [PhaseHistory.ended_at.is_(None)]
        if game_id is not None: criteria.append(PhaseHistory.game_id == game_id)
        if started_before is not None: criteria.append(PhaseHistory.started_at < started_before)
        return self._find(*criteria, order=(PhaseHistory.started_at, PhaseHistory.id))

    def get_phase_duration(self, id: int) -> Optional[int]:
        ph = self.find_by_id(id)
        return _duration(ph) if ph else None

    def get_game_stats(self, game_id: str) -> Dict:
        phases = self.find_by_game_id(game_id)
        counts = dict.fromkeys(PHASE_TYPES, 0)
        durations = []
        for ph in phases:
            counts[ph.phase] = counts.get(ph.phase, 0) + 1
            d = _duration(ph)
            if d is not None: durations.append(d)
        return {
            "total_phases": len(phases),
            "completed_phases": sum(1 for ph in phases if ph.ended_at is not None),
            "phase_counts": counts,
            "total_days": len({ph.day_count for ph in phases}),
            "avg_phase_duration": round(sum(durations) / len(durations)) if durations else None,
        }

    def delete(self, id: int) -> bool:
        with self.db.session() as s: n = s.query(PhaseHistory).filter_by(id=id).delete()
        return n > 0

    def delete_by_game_id(self, game_id: str) -> int:
        with self.db.session() as s: return s.query(PhaseHistory).filter_by(game_id=game_id).delete()
