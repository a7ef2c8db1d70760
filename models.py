from datetime import timezone

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from db import utcnow
from payloads import GAME_CONFIG, ACTION_RESULT, PHASE_RESULT, decode_json, encode_json

Base = declarative_base()

GAME_STATUSES = ("waiting", "day_phase", "night_phase", "finished")
ACTIVE_STATUSES = ("day_phase", "night_phase")
GAME_PHASES = ("discussion", "voting", "action", "consultation")
TEAMS = ("village", "werewolf")

# 角色 -> 阵营
ROLE_TEAMS = {
    "villager": "village",
    "fortune_teller": "village",
    "medium": "village",
    "werewolf": "werewolf",
    "madman": "werewolf",
}
ROLES = tuple(ROLE_TEAMS)
DEATH_CAUSES = ("executed", "killed")

MESSAGE_PHASES = ("day", "night")
MESSAGE_TARGETS = ("all", "werewolf")
ACTION_TYPES = ("divine", "kill", "vote", "speak")
PHASE_TYPES = ("day_discussion", "day_voting", "night_action", "night_consultation")


def team_of(role: str) -> str:
    return ROLE_TEAMS.get(role, "village")


class _Payload(TypeDecorator):
    """JSON text column holding one of the pydantic payload types."""
    impl = Text
    cache_ok = True
    adapter = None
    what = "payload"

    def process_bind_param(self, value, dialect):
        if value is None: return None
        return encode_json(self.adapter, self.adapter.validate_python(value))

    def process_result_value(self, value, dialect):
        return decode_json(self.adapter, value, self.what)


class GameConfigType(_Payload): adapter = GAME_CONFIG; what = "game_config"
class ActionResultType(_Payload): adapter = ACTION_RESULT; what = "action result"
class PhaseResultType(_Payload): adapter = PHASE_RESULT; what = "phase results"


class UTCDateTime(TypeDecorator):
    """Naive UTC on disk; aware values are shifted to UTC before binding."""
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class Game(Base):
    __tablename__ = "games"
    id = Column(String, primary_key=True)
    status = Column(String(16), nullable=False, default="waiting")
    current_phase = Column(String(16), nullable=True)  # discussion/voting/action/consultation
    day_count = Column(Integer, nullable=False, default=0)
    game_config = Column(GameConfigType, nullable=False)
    phase_start_time = Column(UTCDateTime, nullable=True)
    phase_timeout_seconds = Column(Integer, nullable=True)
    winner_team = Column(String(16), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow)

    def __repr__(self): return f"<Game {self.id} {self.status} day={self.day_count}>"


class Player(Base):
    __tablename__ = "players"
    id = Column(Integer, primary_key=True)
    game_id = Column(String, ForeignKey("games.id"), nullable=False)
    name = Column(String(64), nullable=False)
    token = Column(String(128), unique=True, nullable=False)
    role = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default="alive")
    death_day = Column(Integer, nullable=True)
    death_cause = Column(String(16), nullable=True)  # executed / killed
    created_at = Column(UTCDateTime, default=utcnow)

    @property
    def team(self) -> str: return team_of(self.role)

    @property
    def alive(self) -> bool: return self.status == "alive"

    def __repr__(self): return f"<Player {self.name} {self.role} {self.status}>"


class Message(Base):
    __tablename__ = "messages"
    id = Column(Integer, primary_key=True)
    game_id = Column(String, ForeignKey("games.id"), nullable=False)
    player_name = Column(String(64), nullable=False)
    message = Column(Text, nullable=False)
    phase = Column(String(16), nullable=False)  # day/night
    phase_detail = Column(String(16), nullable=True)
    target = Column(String(16), nullable=False, default="all")  # all / werewolf
    day_count = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)


class Action(Base):
    __tablename__ = "actions"
    id = Column(Integer, primary_key=True)
    game_id = Column(String, ForeignKey("games.id"), nullable=False)
    player_token = Column(String(128), nullable=False)
    action_type = Column(String(16), nullable=False)  # divine, kill, vote, speak
    target_player = Column(String(64), nullable=True)
    result = Column(ActionResultType, nullable=True)
    day_count = Column(Integer, nullable=False)
    phase = Column(String(16), nullable=False)
    success = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, default=utcnow)


class PhaseHistory(Base):
    __tablename__ = "phase_history"
    id = Column(Integer, primary_key=True)
    game_id = Column(String, ForeignKey("games.id"), nullable=False)
    phase = Column(String(32), nullable=False)
    day_count = Column(Integer, nullable=False)
    phase_results = Column(PhaseResultType, nullable=True)
    started_at = Column(UTCDateTime, nullable=False)
    ended_at = Column(UTCDateTime, nullable=True)

    @property
    def is_open(self) -> bool: return self.ended_at is None
