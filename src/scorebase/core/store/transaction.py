"""投影库写事务封装

投影库连接运行在 autocommit 模式下，多语句写入通过 BEGIN IMMEDIATE 获取写锁。
同一连接上的事务不能嵌套或交错，因此所有写入共享一把 asyncio.Lock：
事务期间其他协程的写入会等待，而不会被意外并入当前事务。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite


@asynccontextmanager
async def immediate_transaction(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
) -> AsyncIterator[aiosqlite.Connection]:
    """在写锁保护下执行一个 BEGIN IMMEDIATE 事务

    正常退出时提交；任何异常都会回滚整个事务并重新抛出。

    Args:
        conn: 投影库连接（autocommit 模式）
        lock: 该连接的写锁
    """
    async with lock:
        await conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            await conn.execute("COMMIT")
        except Exception:
            await conn.execute("ROLLBACK")
            raise


@asynccontextmanager
async def single_write(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
) -> AsyncIterator[aiosqlite.Connection]:
    """单语句写入：只持有写锁，不开启显式事务"""
    async with lock:
        yield conn
