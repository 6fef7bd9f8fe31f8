"""StandingsStore SQLite 实现 -- 赛季积分榜聚合"""

import asyncio
from datetime import UTC, datetime

import aiosqlite

from ..models.enums import GameStatus
from ..models.event import format_timestamp
from ..models.game import Game
from ..models.standing import TeamStanding
from .game_store import SqliteGameStore
from .transaction import immediate_transaction


class SqliteStandingsStore:
    """StandingsStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection, lock: asyncio.Lock) -> None:
        self._conn = conn
        self._lock = lock

    async def get_season_league(self, tenant_id: str, season_id: str) -> str | None:
        """通过租户关联查询赛季所属联赛 ID"""
        cursor = await self._conn.execute(
            """
            SELECT s.league_id FROM seasons s
            JOIN leagues l ON l.id = s.league_id
            WHERE s.id = ? AND l.tenant_id = ?
            """,
            (season_id, tenant_id),
        )
        row = await cursor.fetchone()
        return row[0] if row else None

    async def list_team_ids(self, league_id: str) -> list[str]:
        """查询联赛下所有球队 ID"""
        cursor = await self._conn.execute(
            "SELECT id FROM teams WHERE league_id = ? ORDER BY id",
            (league_id,),
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def list_final_games(self, season_id: str) -> list[Game]:
        """查询赛季内所有已结束比赛，按时间正序"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM games
            WHERE season_id = ? AND status = ?
            ORDER BY COALESCE(scheduled_at, updated_at) ASC, id ASC
            """,
            (season_id, GameStatus.FINAL.value),
        )
        rows = await cursor.fetchall()
        return [SqliteGameStore._row_to_game(row) for row in rows]

    async def upsert_standings(self, standings: list[TeamStanding]) -> None:
        """在单个事务内写入整张积分榜"""
        now = format_timestamp(datetime.now(UTC))
        async with immediate_transaction(self._conn, self._lock):
            for standing in standings:
                await self._conn.execute(
                    """
                    INSERT INTO standings (season_id, team_id, games_played, wins, losses,
                                           ties, points, goals_for, goals_against,
                                           goal_differential, streak, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (season_id, team_id) DO UPDATE SET
                        games_played = excluded.games_played,
                        wins = excluded.wins,
                        losses = excluded.losses,
                        ties = excluded.ties,
                        points = excluded.points,
                        goals_for = excluded.goals_for,
                        goals_against = excluded.goals_against,
                        goal_differential = excluded.goal_differential,
                        streak = excluded.streak,
                        updated_at = excluded.updated_at
                    """,
                    (
                        standing.season_id,
                        standing.team_id,
                        standing.games_played,
                        standing.wins,
                        standing.losses,
                        standing.ties,
                        standing.points,
                        standing.goals_for,
                        standing.goals_against,
                        standing.goal_differential,
                        standing.streak,
                        now,
                    ),
                )

    async def list_standings(self, season_id: str) -> list[TeamStanding]:
        """查询赛季积分榜，按积分、净胜球、进球数倒序"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM standings
            WHERE season_id = ?
            ORDER BY points DESC, goal_differential DESC, goals_for DESC, team_id ASC
            """,
            (season_id,),
        )
        rows = await cursor.fetchall()
        return [
            TeamStanding(
                season_id=row["season_id"],
                team_id=row["team_id"],
                games_played=row["games_played"],
                wins=row["wins"],
                losses=row["losses"],
                ties=row["ties"],
                points=row["points"],
                goals_for=row["goals_for"],
                goals_against=row["goals_against"],
                goal_differential=row["goal_differential"],
                streak=row["streak"],
                updated_at=datetime.fromisoformat(row["updated_at"]),
            )
            for row in rows
        ]
