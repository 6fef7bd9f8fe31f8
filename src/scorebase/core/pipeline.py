"""Event Ingestion Pipeline -- 事件写入编排

顺序：幂等查询 -> 校验 -> 加载比赛（租户关联 + 终态检查）-> 写入日志
     -> 投影 -> （比赛结束时）积分榜重算 -> 快照广播

事件日志与投影库之间没有跨库事务：事件一旦写入日志即为权威记录，
投影失败时事件保留在日志中（“已落盘、未投影”），由对账任务或
使用同一幂等键的重试补齐。
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from .broadcast import BroadcastEngine
from .exceptions import (
    ConflictWithTerminalStateError,
    DuplicateIdempotencyKeyError,
    NotFoundError,
    ProjectionFailedError,
)
from .models.enums import (
    ADMINISTRATIVE_EVENT_TYPES,
    TERMINAL_STATES,
    EventType,
    MessageType,
)
from .models.event import EventMetadata, GameEvent, NewGameEvent, SpatialCoordinates
from .projection import ProjectionEngine, ProjectionResult
from .snapshot import SnapshotBuilder
from .standings import StandingsTrigger
from .store.game_store import SqliteGameStore
from .store.protocols import EventStore
from .validation import validate_event

log = structlog.get_logger()


@dataclass
class SubmitResult:
    """提交结果

    replayed=True 表示幂等键命中，返回的是已存在的事件。
    """

    event: GameEvent
    replayed: bool = False
    projection_applied: bool = False


class EventIngestionPipeline:
    """事件写入编排器"""

    def __init__(
        self,
        event_store: EventStore,
        game_store: SqliteGameStore,
        projection: ProjectionEngine,
        snapshots: SnapshotBuilder,
        broadcaster: BroadcastEngine | None = None,
        standings_trigger: StandingsTrigger | None = None,
    ) -> None:
        self._event_store = event_store
        self._game_store = game_store
        self._projection = projection
        self._snapshots = snapshots
        self._broadcaster = broadcaster
        self._standings_trigger = standings_trigger

    async def submit(
        self,
        tenant_id: str,
        game_id: str,
        event_type: str,
        payload: Any,
        metadata: EventMetadata,
        idempotency_key: str | None = None,
        occurred_at: datetime | None = None,
        spatial_coordinates: Any = None,
    ) -> SubmitResult:
        """提交一个比赛事件

        Raises:
            UnknownEventTypeError: 事件类型未知（未写入任何数据）
            EventValidationError: payload 不合法（未写入任何数据）
            NotFoundError: 比赛不存在或不属于该租户（未写入任何数据）
            ConflictWithTerminalStateError: 比赛已结束或取消（未写入任何数据）
            ProjectionFailedError: 事件已写入日志，但投影失败；业务错误同时是原错误类型
                （如 BadRequestError），details 携带 event_id
        """
        start_time = time.monotonic()

        # 1. 幂等查询：命中则直接返回，不校验、不投影、不广播
        if idempotency_key:
            existing = await self._event_store.find_by_idempotency_key(
                tenant_id, idempotency_key
            )
            if existing is not None:
                await log.ainfo(
                    "event_replayed",
                    tenant_id=tenant_id,
                    game_id=game_id,
                    event_id=existing.event_id,
                    idempotency_key=idempotency_key,
                )
                return SubmitResult(event=existing, replayed=True)

        # 2. 结构校验
        validate_event(event_type, payload, spatial_coordinates)
        event_type = EventType(event_type)

        # 3. 加载比赛（租户关联）+ 终态检查
        game = await self._game_store.get_game(tenant_id, game_id)
        if game is None:
            raise NotFoundError(f"Game not found: {game_id}")
        if game.status in TERMINAL_STATES and event_type not in ADMINISTRATIVE_EVENT_TYPES:
            raise ConflictWithTerminalStateError(game_id, game.status.value)

        # 4. 写入事件日志
        new_event = NewGameEvent(
            game_id=game_id,
            tenant_id=tenant_id,
            event_type=event_type,
            payload=payload,
            metadata=metadata,
            occurred_at=occurred_at,
            idempotency_key=idempotency_key,
            spatial_coordinates=(
                SpatialCoordinates.model_validate(spatial_coordinates)
                if spatial_coordinates is not None
                else None
            ),
        )
        try:
            event = await self._event_store.append(new_event)
        except DuplicateIdempotencyKeyError:
            # 并发提交竞争：唯一索引拒绝了后到者，返回先到者的事件
            existing = await self._event_store.find_by_idempotency_key(
                tenant_id, idempotency_key
            )
            if existing is None:
                raise
            await log.ainfo(
                "event_idempotency_race_resolved",
                tenant_id=tenant_id,
                game_id=game_id,
                event_id=existing.event_id,
                idempotency_key=idempotency_key,
            )
            return SubmitResult(event=existing, replayed=True)

        await log.ainfo(
            "event_appended",
            tenant_id=tenant_id,
            game_id=game_id,
            event_id=event.event_id,
            event_type=event.event_type.value,
        )

        # 5. 投影；失败时事件仍保留在日志中
        try:
            result = await self._projection.project(tenant_id, event)
        except Exception as e:
            await log.aerror(
                "event_projection_failed",
                tenant_id=tenant_id,
                game_id=game_id,
                event_id=event.event_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise ProjectionFailedError.wrap(event.event_id, e) from e

        # 6. 比赛结束：重算积分榜
        if result.finalized:
            await self._trigger_standings(tenant_id, result)

        # 7. 快照广播
        await self._broadcast(tenant_id, result)

        await log.ainfo(
            "event_submitted",
            tenant_id=tenant_id,
            game_id=game_id,
            event_id=event.event_id,
            projection_applied=result.applied,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
        return SubmitResult(event=event, replayed=False, projection_applied=result.applied)

    async def list_events(self, tenant_id: str, game_id: str) -> list[GameEvent]:
        """查询比赛事件（先确认比赛属于该租户）

        Raises:
            NotFoundError: 比赛不存在或不属于该租户
        """
        game = await self._game_store.get_game(tenant_id, game_id)
        if game is None:
            raise NotFoundError(f"Game not found: {game_id}")
        return await self._event_store.list_by_game(game_id, tenant_id)

    async def _trigger_standings(self, tenant_id: str, result: ProjectionResult) -> None:
        if self._standings_trigger is None:
            return
        try:
            await self._standings_trigger.trigger(tenant_id, result.season_id)
        except Exception as e:
            await log.aerror(
                "standings_trigger_failed",
                tenant_id=tenant_id,
                game_id=result.game.id,
                season_id=result.season_id,
                error=str(e),
            )

    async def _broadcast(self, tenant_id: str, result: ProjectionResult) -> None:
        if self._broadcaster is None:
            return
        try:
            snapshot = await self._snapshots.build(tenant_id, result.game)
            await self._broadcaster.broadcast(
                tenant_id,
                result.game.id,
                snapshot,
                MessageType.SNAPSHOT_UPDATE,
            )
        except Exception as e:
            await log.aerror(
                "snapshot_broadcast_failed",
                tenant_id=tenant_id,
                game_id=result.game.id,
                error=str(e),
            )
