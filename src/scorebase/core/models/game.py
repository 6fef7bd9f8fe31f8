"""Game Domain Model

games 表是事件日志的投影（current state），只允许由 ProjectionEngine 修改。
tenant 不是 games 的列，只能通过 seasons -> leagues 关联得到。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import GameStatus


class Game(BaseModel):
    """比赛当前状态"""

    id: str = Field(description="比赛 ID")
    season_id: str = Field(description="所属赛季 ID")
    home_team_id: str
    away_team_id: str
    status: GameStatus = Field(default=GameStatus.SCHEDULED)
    home_score: int = Field(default=0, ge=0)
    away_score: int = Field(default=0, ge=0)
    scheduled_at: datetime | None = None
    updated_at: datetime


class GameState(BaseModel):
    """投影可变部分：apply_event 的输入与输出"""

    home_team_id: str
    away_team_id: str
    status: GameStatus
    home_score: int = 0
    away_score: int = 0

    @classmethod
    def from_game(cls, game: Game) -> "GameState":
        return cls(
            home_team_id=game.home_team_id,
            away_team_id=game.away_team_id,
            status=game.status,
            home_score=game.home_score,
            away_score=game.away_score,
        )
