"""Scorebase Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .connection import Connection
from .enums import (
    ADMINISTRATIVE_EVENT_TYPES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    EventType,
    GameStatus,
    MessageType,
    validate_transition,
)
from .event import (
    EventMetadata,
    GameEvent,
    NewGameEvent,
    SpatialCoordinates,
    format_timestamp,
    make_ordering_key,
)
from .game import Game, GameState
from .payloads import (
    PAYLOAD_SCHEMAS,
    EventReversalPayload,
    GameCancelledPayload,
    GameFinalizedPayload,
    GameStartedPayload,
    GoalScoredPayload,
    PenaltyAssessedPayload,
    PeriodEndedPayload,
    ScoreCorrectedPayload,
    clock_to_seconds,
)
from .snapshot import GameSnapshot, ViewerMessage
from .standing import TeamStanding

__all__ = [
    # 枚举
    "GameStatus",
    "EventType",
    "MessageType",
    "ADMINISTRATIVE_EVENT_TYPES",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # Event
    "GameEvent",
    "NewGameEvent",
    "EventMetadata",
    "SpatialCoordinates",
    "format_timestamp",
    "make_ordering_key",
    # Game
    "Game",
    "GameState",
    # Connection
    "Connection",
    # Snapshot
    "GameSnapshot",
    "ViewerMessage",
    # Standing
    "TeamStanding",
    # Payloads
    "PAYLOAD_SCHEMAS",
    "GameStartedPayload",
    "GoalScoredPayload",
    "PenaltyAssessedPayload",
    "PeriodEndedPayload",
    "GameFinalizedPayload",
    "GameCancelledPayload",
    "ScoreCorrectedPayload",
    "EventReversalPayload",
    "clock_to_seconds",
]
