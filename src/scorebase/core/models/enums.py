"""枚举定义

包含 GameStatus 状态机、EventType 封闭枚举、MessageType，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class GameStatus(StrEnum):
    """比赛状态机：SCHEDULED -> LIVE -> {FINAL | CANCELLED}，SCHEDULED 可直接 CANCELLED"""

    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"

    # 终态
    FINAL = "FINAL"
    CANCELLED = "CANCELLED"


VALID_TRANSITIONS: dict[GameStatus, set[GameStatus]] = {
    GameStatus.SCHEDULED: {GameStatus.LIVE, GameStatus.CANCELLED},
    GameStatus.LIVE: {GameStatus.FINAL, GameStatus.CANCELLED},
    # 终态不可再流转
    GameStatus.FINAL: set(),
    GameStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[GameStatus] = {
    GameStatus.FINAL,
    GameStatus.CANCELLED,
}


class EventType(StrEnum):
    """比赛事件类型（封闭枚举）"""

    GAME_STARTED = "GAME_STARTED"
    GOAL_SCORED = "GOAL_SCORED"
    PENALTY_ASSESSED = "PENALTY_ASSESSED"
    PERIOD_ENDED = "PERIOD_ENDED"
    GAME_FINALIZED = "GAME_FINALIZED"
    GAME_CANCELLED = "GAME_CANCELLED"
    SCORE_CORRECTED = "SCORE_CORRECTED"
    EVENT_REVERSAL = "EVENT_REVERSAL"


# 管理性更正事件：终态比赛仍允许写入
ADMINISTRATIVE_EVENT_TYPES: set[EventType] = {
    EventType.SCORE_CORRECTED,
    EventType.EVENT_REVERSAL,
}


class MessageType(StrEnum):
    """推送给观众的消息类型"""

    INITIAL_SNAPSHOT = "initial_snapshot"
    SNAPSHOT_UPDATE = "snapshot_update"


def validate_transition(from_status: GameStatus, to_status: GameStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
