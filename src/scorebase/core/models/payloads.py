"""Event Payload 子类型

每种事件类型一个封闭 schema（extra="forbid"），字段不做类型转换。
uuid / 时间戳格式通过 AfterValidator 校验，保留调用方原始字符串。
"""

import re
import uuid
from datetime import datetime
from typing import Annotated

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
)

from .enums import EventType

TIME_REMAINING_PATTERN = r"^\d{2}:\d{2}$"


def _check_uuid(value: str) -> str:
    try:
        uuid.UUID(value)
    except ValueError:
        raise ValueError("Invalid format, expected uuid") from None
    return value


def _check_timestamp(value: str) -> str:
    try:
        datetime.fromisoformat(value)
    except ValueError:
        raise ValueError("Invalid format, expected date-time") from None
    return value


UuidStr = Annotated[StrictStr, AfterValidator(_check_uuid)]
TimestampStr = Annotated[StrictStr, AfterValidator(_check_timestamp)]
NonEmptyStr = Annotated[StrictStr, Field(min_length=1)]
ClockStr = Annotated[StrictStr, Field(pattern=TIME_REMAINING_PATTERN)]
Period = Annotated[StrictInt, Field(ge=1)]
Score = Annotated[StrictInt, Field(ge=0)]
# 整数或小数均可；StrictFloat 接受 int，拒绝 bool 与字符串
Minutes = Annotated[StrictFloat, Field(ge=0)]


class _ClosedPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")


class GameStartedPayload(_ClosedPayload):
    """GAME_STARTED 事件 payload"""

    start_time: TimestampStr
    location: StrictStr | None = None


class GoalScoredPayload(_ClosedPayload):
    """GOAL_SCORED 事件 payload"""

    team_id: UuidStr
    player_id: UuidStr
    assist_player_id: UuidStr | None = None
    period: Period
    time_remaining: ClockStr


class PenaltyAssessedPayload(_ClosedPayload):
    """PENALTY_ASSESSED 事件 payload"""

    team_id: UuidStr
    player_id: UuidStr
    penalty_type: NonEmptyStr
    duration_minutes: Minutes
    period: Period
    time_remaining: ClockStr


class PeriodEndedPayload(_ClosedPayload):
    """PERIOD_ENDED 事件 payload"""

    period: Period
    home_score: Score
    away_score: Score


class GameFinalizedPayload(_ClosedPayload):
    """GAME_FINALIZED 事件 payload"""

    final_home_score: Score
    final_away_score: Score


class GameCancelledPayload(_ClosedPayload):
    """GAME_CANCELLED 事件 payload"""

    reason: NonEmptyStr
    cancelled_at: TimestampStr


class ScoreCorrectedPayload(_ClosedPayload):
    """SCORE_CORRECTED 事件 payload（管理性更正，仅审计）"""

    team_id: UuidStr
    old_score: Score
    new_score: Score
    reason: NonEmptyStr


class EventReversalPayload(_ClosedPayload):
    """EVENT_REVERSAL 事件 payload，引用被撤销事件的 event_id"""

    reversed_event_id: NonEmptyStr
    reason: NonEmptyStr


PAYLOAD_SCHEMAS: dict[EventType, type[BaseModel]] = {
    EventType.GAME_STARTED: GameStartedPayload,
    EventType.GOAL_SCORED: GoalScoredPayload,
    EventType.PENALTY_ASSESSED: PenaltyAssessedPayload,
    EventType.PERIOD_ENDED: PeriodEndedPayload,
    EventType.GAME_FINALIZED: GameFinalizedPayload,
    EventType.GAME_CANCELLED: GameCancelledPayload,
    EventType.SCORE_CORRECTED: ScoreCorrectedPayload,
    EventType.EVENT_REVERSAL: EventReversalPayload,
}

_CLOCK_RE = re.compile(TIME_REMAINING_PATTERN)


def clock_to_seconds(time_remaining: str) -> int | None:
    """将 MM:SS 转换为秒数，格式不符返回 None"""
    if not isinstance(time_remaining, str) or not _CLOCK_RE.match(time_remaining):
        return None
    minutes, seconds = time_remaining.split(":")
    return int(minutes) * 60 + int(seconds)
