"""GameStore SQLite 实现

games 表是事件日志的投影。租户归属只能通过 games -> seasons -> leagues 关联得到，
因此所有读取都走这条关联；跨租户读取与“不存在”返回同样的 None。
"""

import asyncio
from datetime import UTC, datetime

import aiosqlite

from ..models.enums import GameStatus
from ..models.event import GameEvent, format_timestamp
from ..models.game import Game
from .transaction import single_write

_SELECT_GAME_FOR_TENANT = """
SELECT g.* FROM games g
JOIN seasons s ON s.id = g.season_id
JOIN leagues l ON l.id = s.league_id
WHERE g.id = ? AND l.tenant_id = ?
"""


class SqliteGameStore:
    """GameStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection, lock: asyncio.Lock) -> None:
        self._conn = conn
        self._lock = lock

    async def create_game(self, game: Game) -> None:
        """创建比赛记录（赛程导入；比赛状态此后只由投影修改）"""
        async with single_write(self._conn, self._lock):
            await self._conn.execute(
                """
                INSERT INTO games (id, season_id, home_team_id, away_team_id, status,
                                   home_score, away_score, scheduled_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    game.id,
                    game.season_id,
                    game.home_team_id,
                    game.away_team_id,
                    game.status.value,
                    game.home_score,
                    game.away_score,
                    format_timestamp(game.scheduled_at) if game.scheduled_at else None,
                    format_timestamp(game.updated_at),
                ),
            )

    async def get_game(self, tenant_id: str, game_id: str) -> Game | None:
        """通过租户关联查询比赛"""
        cursor = await self._conn.execute(_SELECT_GAME_FOR_TENANT, (game_id, tenant_id))
        row = await cursor.fetchone()
        return self._row_to_game(row) if row else None

    async def update_game(self, game: Game) -> None:
        """写回投影后的比赛状态

        注意：此方法不开启事务，需在 immediate_transaction 内调用。
        """
        await self._conn.execute(
            """
            UPDATE games
            SET status = ?, home_score = ?, away_score = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                game.status.value,
                game.home_score,
                game.away_score,
                format_timestamp(game.updated_at),
                game.id,
            ),
        )

    async def is_projected(self, event_id: str) -> bool:
        """事件是否已记录在投影台账中"""
        cursor = await self._conn.execute(
            "SELECT 1 FROM projected_events WHERE event_id = ?",
            (event_id,),
        )
        return await cursor.fetchone() is not None

    async def mark_projected(self, event: GameEvent) -> None:
        """登记已投影事件（需在 immediate_transaction 内调用）"""
        await self._conn.execute(
            """
            INSERT INTO projected_events
                (event_id, game_id, tenant_id, ordering_key, projected_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.event_id,
                event.game_id,
                event.tenant_id,
                event.ordering_key,
                format_timestamp(datetime.now(UTC)),
            ),
        )

    async def list_projected_event_ids(self, game_id: str | None = None) -> set[str]:
        """查询台账中已投影事件 ID，可按比赛过滤"""
        if game_id is None:
            cursor = await self._conn.execute("SELECT event_id FROM projected_events")
        else:
            cursor = await self._conn.execute(
                "SELECT event_id FROM projected_events WHERE game_id = ?",
                (game_id,),
            )
        rows = await cursor.fetchall()
        return {row[0] for row in rows}

    async def latest_projected_ordering_key(self, game_id: str) -> str | None:
        """比赛最近一条已投影事件的 ordering_key，无则返回 None"""
        cursor = await self._conn.execute(
            "SELECT MAX(ordering_key) FROM projected_events WHERE game_id = ?",
            (game_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else None

    @staticmethod
    def _row_to_game(row: aiosqlite.Row) -> Game:
        """将数据库行转换为 Game 模型"""
        scheduled_at = row["scheduled_at"]
        return Game(
            id=row["id"],
            season_id=row["season_id"],
            home_team_id=row["home_team_id"],
            away_team_id=row["away_team_id"],
            status=GameStatus(row["status"]),
            home_score=row["home_score"],
            away_score=row["away_score"],
            scheduled_at=datetime.fromisoformat(scheduled_at) if scheduled_at else None,
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
