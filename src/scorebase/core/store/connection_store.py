"""ConnectionStore SQLite 实现 -- 观众连接注册表

记录由 gateway 在观众连接建立时写入、断开时删除；
投递失败时由 BroadcastEngine 删除。过期记录不参与广播，由 CLI 定期清理。
"""

import asyncio
from datetime import UTC, datetime

import aiosqlite

from ..models.connection import Connection
from ..models.event import format_timestamp
from .transaction import single_write


class SqliteConnectionStore:
    """ConnectionRegistry 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection, lock: asyncio.Lock) -> None:
        self._conn = conn
        self._lock = lock

    async def register(self, connection: Connection) -> None:
        """登记观众连接（同 connection_id 覆盖）"""
        async with single_write(self._conn, self._lock):
            await self._conn.execute(
                """
                INSERT OR REPLACE INTO connections (connection_id, game_id, tenant_id,
                                                    user_id, connected_at, expires_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    connection.connection_id,
                    connection.game_id,
                    connection.tenant_id,
                    connection.user_id,
                    format_timestamp(connection.connected_at),
                    format_timestamp(connection.expires_at),
                ),
            )

    async def remove(self, connection_id: str) -> None:
        """删除观众连接；连接不存在时为 no-op"""
        async with single_write(self._conn, self._lock):
            await self._conn.execute(
                "DELETE FROM connections WHERE connection_id = ?",
                (connection_id,),
            )

    async def get(self, connection_id: str) -> Connection | None:
        """根据 connection_id 查询连接"""
        cursor = await self._conn.execute(
            "SELECT * FROM connections WHERE connection_id = ?",
            (connection_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_connection(row) if row else None

    async def list_by_game(
        self,
        game_id: str,
        tenant_id: str,
        now: datetime | None = None,
    ) -> list[Connection]:
        """查询比赛的有效连接（过滤已过期记录）"""
        now = now or datetime.now(UTC)
        cursor = await self._conn.execute(
            """
            SELECT * FROM connections
            WHERE game_id = ? AND tenant_id = ? AND expires_at > ?
            ORDER BY connected_at ASC
            """,
            (game_id, tenant_id, format_timestamp(now)),
        )
        rows = await cursor.fetchall()
        return [self._row_to_connection(row) for row in rows]

    async def purge_expired(self, now: datetime | None = None) -> int:
        """删除已过期连接，返回删除条数"""
        now = now or datetime.now(UTC)
        async with single_write(self._conn, self._lock):
            cursor = await self._conn.execute(
                "DELETE FROM connections WHERE expires_at <= ?",
                (format_timestamp(now),),
            )
        return cursor.rowcount

    @staticmethod
    def _row_to_connection(row: aiosqlite.Row) -> Connection:
        return Connection(
            connection_id=row["connection_id"],
            game_id=row["game_id"],
            tenant_id=row["tenant_id"],
            user_id=row["user_id"],
            connected_at=datetime.fromisoformat(row["connected_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
        )
