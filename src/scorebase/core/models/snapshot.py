"""GameSnapshot / ViewerMessage Domain Model

快照是推送给观众的比赛状态视图：比分、状态、节次、时钟和最近事件。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ..config import SNAPSHOT_VERSION
from .enums import GameStatus, MessageType
from .event import GameEvent


class GameSnapshot(BaseModel):
    """比赛快照"""

    game_id: str
    home_team_id: str
    away_team_id: str
    home_score: int
    away_score: int
    status: GameStatus
    period: int = Field(default=1, description="当前节次")
    clock_seconds: int = Field(default=0, description="当前节剩余秒数")
    recent_events: list[GameEvent] = Field(
        default_factory=list, description="最近事件，最新在前"
    )
    snapshot_version: str = Field(default=SNAPSHOT_VERSION)
    generated_at: datetime


class ViewerMessage(BaseModel):
    """推送给单个观众连接的消息"""

    message_type: MessageType
    timestamp: datetime
    snapshot: GameSnapshot
