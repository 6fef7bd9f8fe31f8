"""Scorebase Core Store -- SQLite 持久化实现

提供工厂函数创建 Store 实例组：事件库与投影库各一个连接，
投影库上的所有写入共享同一把写锁。
"""

import asyncio

import aiosqlite

from .connection_store import SqliteConnectionStore
from .event_store import SqliteEventStore
from .game_store import SqliteGameStore
from .sqlite_init import init_db, init_event_db, open_connection
from .standings_store import SqliteStandingsStore
from .transaction import immediate_transaction


class StoreGroup:
    """Store 实例组"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        event_conn: aiosqlite.Connection,
    ) -> None:
        self.conn = conn
        self.event_conn = event_conn
        self.write_lock = asyncio.Lock()
        self.event_store = SqliteEventStore(event_conn)
        self.game_store = SqliteGameStore(conn, self.write_lock)
        self.connection_store = SqliteConnectionStore(conn, self.write_lock)
        self.standings_store = SqliteStandingsStore(conn, self.write_lock)

    async def close(self) -> None:
        """关闭两个数据库连接"""
        await self.conn.close()
        await self.event_conn.close()


async def create_store_group(db_path: str, event_db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: 投影库 SQLite 文件路径
        event_db_path: 事件库 SQLite 文件路径

    Returns:
        StoreGroup 实例
    """
    conn = await open_connection(db_path)
    await init_db(conn)

    event_conn = await open_connection(event_db_path)
    await init_event_db(event_conn)

    return StoreGroup(conn=conn, event_conn=event_conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteEventStore",
    "SqliteGameStore",
    "SqliteConnectionStore",
    "SqliteStandingsStore",
    "init_db",
    "init_event_db",
    "open_connection",
    "immediate_transaction",
]
