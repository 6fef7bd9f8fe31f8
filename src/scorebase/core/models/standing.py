"""TeamStanding Domain Model -- 赛季积分榜"""

from datetime import datetime

from pydantic import BaseModel, Field


class TeamStanding(BaseModel):
    """球队赛季积分（胜 3 / 平 1 / 负 0）"""

    season_id: str
    team_id: str
    games_played: int = 0
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_differential: int = 0
    streak: str | None = Field(default=None, description="连续战绩，例如 W3 / L2 / T1")
    updated_at: datetime | None = None
