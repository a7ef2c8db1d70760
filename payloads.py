from __future__ import annotations
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from errors import DecodeError

Verdict = Literal["villager", "werewolf"]


class _Closed(BaseModel):
    # 未知字段直接拒绝，不静默丢弃
    model_config = ConfigDict(extra="forbid")


# -------- game_config --------
class RoleQuota(_Closed):
    villager: int
    fortune_teller: int
    medium: Optional[int] = None
    werewolf: int
    madman: int


class PhaseTimeouts(_Closed):
    day_discussion: int
    day_voting: int
    night_action: int
    night_consultation: int


class SpeakLimits(_Closed):
    day_speaks_per_player: int
    night_werewolf_speaks: int


class GameConfig(_Closed):
    player_count: int
    roles: RoleQuota
    timeouts: PhaseTimeouts
    limits: SpeakLimits


# -------- action.result --------
class DivineResult(_Closed):
    action: Literal["divine"] = "divine"
    target: str
    result: Verdict


class KillResult(_Closed):
    action: Literal["kill"] = "kill"
    target: str


class VoteResult(_Closed):
    action: Literal["vote"] = "vote"
    target: str


class MediumResult(_Closed):
    action: Literal["medium"] = "medium"
    target: str
    result: Verdict


ActionResult = Annotated[Union[DivineResult, KillResult, VoteResult, MediumResult], Field(discriminator="action")]


# -------- phase_history.phase_results --------
class VotingPhaseResult(_Closed):
    phase: Literal["day_voting"] = "day_voting"
    votes: Dict[str, str]  # voter -> target
    executed: Optional[str] = None
    vote_counts: Dict[str, int]


class NightActionResult(_Closed):
    phase: Literal["night_action"] = "night_action"
    killed: Optional[str] = None
    divine_results: Optional[List[DivineResult]] = None
    medium_results: Optional[List[MediumResult]] = None


class DiscussionPhaseResult(_Closed):
    phase: Literal["day_discussion"] = "day_discussion"
    message_count: int
    participants: List[str]


class ConsultationPhaseResult(_Closed):
    phase: Literal["night_consultation"] = "night_consultation"
    message_count: int
    participants: List[str]


PhaseResult = Annotated[
    Union[VotingPhaseResult, NightActionResult, DiscussionPhaseResult, ConsultationPhaseResult],
    Field(discriminator="phase"),
]

GAME_CONFIG = TypeAdapter(GameConfig)
ACTION_RESULT = TypeAdapter(ActionResult)
PHASE_RESULT = TypeAdapter(PhaseResult)


def _coerce(adapter: TypeAdapter, value, what: str):
    if value is None: return None
    try: return adapter.validate_python(value)
    except ValidationError as exc:
        raise DecodeError(f"invalid {what}: {exc.errors()[0]['msg']}") from exc


def decode_json(adapter: TypeAdapter, raw, what: str):
    if raw is None: return None
    try: return adapter.validate_json(raw)
    except ValidationError as exc:
        raise DecodeError(f"cannot decode {what}: {exc.errors()[0]['msg']}") from exc


def encode_json(adapter: TypeAdapter, value) -> Optional[str]:
    if value is None: return None
    return adapter.dump_json(value).decode()


def to_game_config(value) -> GameConfig:
    if value is None: raise DecodeError("game_config is required")
    return _coerce(GAME_CONFIG, value, "game_config")


def to_action_result(value): return _coerce(ACTION_RESULT, value, "action result")
def to_phase_result(value): return _coerce(PHASE_RESULT, value, "phase result")
