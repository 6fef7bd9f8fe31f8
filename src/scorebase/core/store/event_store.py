"""EventStore SQLite 实现

事件表 append-only：只允许插入；唯一的删除路径是 purge_expired，
且只删除 retention_expiry 已过的事件。
每次 append 是单语句写入，不存在跨记录事务。
"""

import json
import sqlite3
from datetime import UTC, datetime, timedelta

import aiosqlite
from ulid import ULID

from ..config import EVENT_RETENTION_DAYS, EVENT_SCHEMA_VERSION
from ..exceptions import DuplicateIdempotencyKeyError
from ..models.enums import EventType
from ..models.event import (
    EventMetadata,
    GameEvent,
    NewGameEvent,
    SpatialCoordinates,
    format_timestamp,
    make_ordering_key,
)

# 排序键上界后缀：使 end 时刻内的所有事件都落在范围内
_RANGE_END_SUFFIX = "#\uffff"


def _is_idempotency_conflict(exc: sqlite3.IntegrityError) -> bool:
    message = str(exc)
    return "idempotency_key" in message or "idx_events_idempotency_key" in message


class SqliteEventStore:
    """EventStore 的 SQLite 实现"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        retention_days: int = EVENT_RETENTION_DAYS,
    ) -> None:
        self._conn = conn
        self._retention = timedelta(days=retention_days)

    async def append(self, new_event: NewGameEvent) -> GameEvent:
        """追加事件（append-only）

        分配 event_id（ULID）、缺省 occurred_at、ordering_key、recorded_at 与 retention_expiry。

        Raises:
            DuplicateIdempotencyKeyError: (tenant_id, idempotency_key) 已存在
        """
        recorded_at = datetime.now(UTC)
        occurred_at = new_event.occurred_at or recorded_at
        if occurred_at.tzinfo is None:
            occurred_at = occurred_at.replace(tzinfo=UTC)
        event_id = str(ULID())

        event = GameEvent(
            event_id=event_id,
            game_id=new_event.game_id,
            tenant_id=new_event.tenant_id,
            event_type=new_event.event_type,
            schema_version=EVENT_SCHEMA_VERSION,
            occurred_at=occurred_at,
            ordering_key=make_ordering_key(occurred_at, event_id),
            payload=new_event.payload,
            metadata=new_event.metadata,
            idempotency_key=new_event.idempotency_key,
            recorded_at=recorded_at,
            retention_expiry=recorded_at + self._retention,
            spatial_coordinates=new_event.spatial_coordinates,
        )

        try:
            await self._conn.execute(
                """
                INSERT INTO events (event_id, game_id, tenant_id, event_type, schema_version,
                                    occurred_at, ordering_key, payload, metadata,
                                    idempotency_key, recorded_at, retention_expiry,
                                    spatial_coordinates)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.event_id,
                    event.game_id,
                    event.tenant_id,
                    event.event_type.value,
                    event.schema_version,
                    format_timestamp(event.occurred_at),
                    event.ordering_key,
                    json.dumps(event.payload, ensure_ascii=False),
                    event.metadata.model_dump_json(),
                    event.idempotency_key,
                    format_timestamp(event.recorded_at),
                    format_timestamp(event.retention_expiry),
                    (
                        event.spatial_coordinates.model_dump_json()
                        if event.spatial_coordinates
                        else None
                    ),
                ),
            )
        except sqlite3.IntegrityError as e:
            if event.idempotency_key and _is_idempotency_conflict(e):
                raise DuplicateIdempotencyKeyError(
                    event.tenant_id, event.idempotency_key
                ) from e
            raise

        return event

    async def find_by_idempotency_key(
        self,
        tenant_id: str,
        idempotency_key: str,
    ) -> GameEvent | None:
        """按 (tenant_id, idempotency_key) 查找已存在事件"""
        cursor = await self._conn.execute(
            "SELECT * FROM events WHERE tenant_id = ? AND idempotency_key = ? LIMIT 1",
            (tenant_id, idempotency_key),
        )
        row = await cursor.fetchone()
        return self._row_to_event(row) if row else None

    async def get(self, tenant_id: str, event_id: str) -> GameEvent | None:
        """查询单个事件（跨租户视为不存在）"""
        cursor = await self._conn.execute(
            "SELECT * FROM events WHERE tenant_id = ? AND event_id = ?",
            (tenant_id, event_id),
        )
        row = await cursor.fetchone()
        return self._row_to_event(row) if row else None

    async def list_by_game(self, game_id: str, tenant_id: str) -> list[GameEvent]:
        """查询比赛的全部事件，按 ordering_key 正序，仅返回该租户的事件"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM events
            WHERE game_id = ? AND tenant_id = ?
            ORDER BY ordering_key ASC
            """,
            (game_id, tenant_id),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def list_recent_by_game(
        self,
        game_id: str,
        tenant_id: str,
        limit: int,
    ) -> list[GameEvent]:
        """查询比赛最近的 limit 条事件，最新在前"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM events
            WHERE game_id = ? AND tenant_id = ?
            ORDER BY ordering_key DESC
            LIMIT ?
            """,
            (game_id, tenant_id, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def list_by_tenant(
        self,
        tenant_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[GameEvent]:
        """按租户查询事件，按 ordering_key 正序

        Args:
            tenant_id: 租户 ID
            start: 起始时间（含）
            end: 结束时间（含该时刻的所有事件）
            limit: 最多返回条数
        """
        sql = "SELECT * FROM events WHERE tenant_id = ?"
        params: list[object] = [tenant_id]
        if start is not None:
            sql += " AND ordering_key >= ?"
            params.append(f"{format_timestamp(start)}#")
        if end is not None:
            sql += " AND ordering_key <= ?"
            params.append(f"{format_timestamp(end)}{_RANGE_END_SUFFIX}")
        sql += " ORDER BY ordering_key ASC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def is_reversed(self, tenant_id: str, event_id: str) -> bool:
        """是否存在同租户下引用该事件的 EVENT_REVERSAL"""
        cursor = await self._conn.execute(
            """
            SELECT 1 FROM events
            WHERE tenant_id = ? AND event_type = ?
              AND json_extract(payload, '$.reversed_event_id') = ?
            LIMIT 1
            """,
            (tenant_id, EventType.EVENT_REVERSAL.value, event_id),
        )
        row = await cursor.fetchone()
        return row is not None

    async def list_all(self) -> list[GameEvent]:
        """查询所有事件，按 ordering_key 排序（用于投影对账）"""
        cursor = await self._conn.execute("SELECT * FROM events ORDER BY ordering_key ASC")
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def purge_expired(self, now: datetime | None = None) -> int:
        """删除 retention_expiry 已过的事件，返回删除条数"""
        now = now or datetime.now(UTC)
        cursor = await self._conn.execute(
            "DELETE FROM events WHERE retention_expiry < ?",
            (format_timestamp(now),),
        )
        return cursor.rowcount

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> GameEvent:
        """将数据库行转换为 GameEvent 模型"""
        spatial = row["spatial_coordinates"]
        return GameEvent(
            event_id=row["event_id"],
            game_id=row["game_id"],
            tenant_id=row["tenant_id"],
            event_type=EventType(row["event_type"]),
            schema_version=row["schema_version"],
            occurred_at=datetime.fromisoformat(row["occurred_at"]),
            ordering_key=row["ordering_key"],
            payload=json.loads(row["payload"]) if row["payload"] else {},
            metadata=EventMetadata.model_validate_json(row["metadata"]),
            idempotency_key=row["idempotency_key"],
            recorded_at=datetime.fromisoformat(row["recorded_at"]),
            retention_expiry=datetime.fromisoformat(row["retention_expiry"]),
            spatial_coordinates=(
                SpatialCoordinates.model_validate_json(spatial) if spatial else None
            ),
        )
