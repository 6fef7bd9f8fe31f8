"""Standings Trigger -- 比赛结束后重新计算赛季积分榜

计分规则：胜 3 分 / 平 1 分 / 负 0 分。
连续战绩只看最近 10 场，格式为 结果字母 + 场数（W3 / L2 / T1）。
"""

import time

import structlog

from .exceptions import NotFoundError
from .models.game import Game
from .models.standing import TeamStanding
from .store.standings_store import SqliteStandingsStore

log = structlog.get_logger()

WIN_POINTS = 3
TIE_POINTS = 1
STREAK_WINDOW = 10


def calculate_streak(recent_results: list[str]) -> str | None:
    """根据最近战绩（最新在前）计算连续战绩

    Args:
        recent_results: 'W' / 'L' / 'T' 序列，最新在前

    Returns:
        例如 "W3"；没有比赛时返回 None
    """
    if not recent_results:
        return None

    most_recent = recent_results[0]
    count = 1
    for result in recent_results[1:]:
        if result != most_recent:
            break
        count += 1
    return f"{most_recent}{count}"


def calculate_standings(
    season_id: str,
    team_ids: list[str],
    games: list[Game],
) -> list[TeamStanding]:
    """根据已结束比赛计算积分榜（纯函数）

    Args:
        season_id: 赛季 ID
        team_ids: 联赛内所有球队（没有比赛的球队也会得到一行零记录）
        games: 已结束比赛，按时间正序

    Returns:
        每支球队一行 TeamStanding
    """
    standings = {
        team_id: TeamStanding(season_id=season_id, team_id=team_id) for team_id in team_ids
    }
    recent: dict[str, list[str]] = {team_id: [] for team_id in team_ids}

    for game in games:
        home = standings.get(game.home_team_id)
        away = standings.get(game.away_team_id)
        # 球队不属于该联赛时跳过
        if home is None or away is None:
            continue

        if game.home_score > game.away_score:
            home_result, away_result = "W", "L"
        elif game.home_score < game.away_score:
            home_result, away_result = "L", "W"
        else:
            home_result, away_result = "T", "T"

        for standing, result, scored, conceded in (
            (home, home_result, game.home_score, game.away_score),
            (away, away_result, game.away_score, game.home_score),
        ):
            standing.games_played += 1
            standing.goals_for += scored
            standing.goals_against += conceded
            if result == "W":
                standing.wins += 1
                standing.points += WIN_POINTS
            elif result == "L":
                standing.losses += 1
            else:
                standing.ties += 1
                standing.points += TIE_POINTS
            results = recent[standing.team_id]
            results.insert(0, result)
            del results[STREAK_WINDOW:]

    for team_id, standing in standings.items():
        standing.goal_differential = standing.goals_for - standing.goals_against
        standing.streak = calculate_streak(recent[team_id])

    return list(standings.values())


class StandingsTrigger:
    """积分榜重算触发器"""

    def __init__(self, standings_store: SqliteStandingsStore) -> None:
        self._store = standings_store

    async def trigger(self, tenant_id: str, season_id: str) -> list[TeamStanding]:
        """重新计算并持久化赛季积分榜

        Raises:
            NotFoundError: 赛季不存在或不属于该租户
        """
        start_time = time.monotonic()

        league_id = await self._store.get_season_league(tenant_id, season_id)
        if league_id is None:
            raise NotFoundError(f"Season not found: {season_id}")

        team_ids = await self._store.list_team_ids(league_id)
        games = await self._store.list_final_games(season_id)
        standings = calculate_standings(season_id, team_ids, games)
        await self._store.upsert_standings(standings)

        await log.ainfo(
            "standings_recalculated",
            tenant_id=tenant_id,
            season_id=season_id,
            team_count=len(standings),
            game_count=len(games),
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
        return standings

    async def get_standings(self, tenant_id: str, season_id: str) -> list[TeamStanding]:
        """查询已持久化的赛季积分榜（积分、净胜球倒序）

        Raises:
            NotFoundError: 赛季不存在或不属于该租户
        """
        if await self._store.get_season_league(tenant_id, season_id) is None:
            raise NotFoundError(f"Season not found: {season_id}")
        return await self._store.list_standings(season_id)
