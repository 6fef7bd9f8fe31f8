"""GameEvent Domain Model

事件日志 append-only，写入后不可修改；撤销通过追加 EVENT_REVERSAL 事件完成。
event_id 使用 ULID 格式；ordering_key = occurred_at#event_id，保证同一时间戳下也全序。
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from ..config import EVENT_SCHEMA_VERSION
from .enums import EventType


class EventMetadata(BaseModel):
    """事件审计元数据"""

    user_id: str = Field(description="提交者用户 ID")
    source: str = Field(default="api", description="事件来源")
    ip_address: str | None = Field(default=None, description="来源 IP")
    user_agent: str | None = Field(default=None, description="客户端 UA")


class SpatialCoordinates(BaseModel):
    """归一化场地坐标（0.0 - 1.0），范围校验由 validation 模块独立完成"""

    x: float
    y: float


class NewGameEvent(BaseModel):
    """待写入的事件（尚未分配 event_id / ordering_key）"""

    game_id: str
    tenant_id: str
    event_type: EventType
    payload: dict[str, Any] = Field(default_factory=dict)
    metadata: EventMetadata
    occurred_at: datetime | None = Field(
        default=None,
        description="事件发生时间，缺省时由服务端在写入时赋值",
    )
    idempotency_key: str | None = Field(default=None, description="调用方提供的幂等键")
    spatial_coordinates: SpatialCoordinates | None = None


class GameEvent(BaseModel):
    """已持久化的事件"""

    event_id: str = Field(description="唯一标识，ULID 格式，写入时生成")
    game_id: str
    tenant_id: str
    event_type: EventType
    schema_version: str = Field(default=EVENT_SCHEMA_VERSION)
    occurred_at: datetime
    ordering_key: str = Field(description="occurred_at#event_id，用于全序排序")
    payload: dict[str, Any] = Field(default_factory=dict)
    metadata: EventMetadata
    idempotency_key: str | None = None
    recorded_at: datetime = Field(description="写入时间")
    retention_expiry: datetime = Field(description="保留到期时间（写入时间 + 保留窗口）")
    spatial_coordinates: SpatialCoordinates | None = None


def format_timestamp(value: datetime) -> str:
    """将时间格式化为定宽 UTC ISO-8601（微秒精度），保证字典序即时间序"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def make_ordering_key(occurred_at: datetime, event_id: str) -> str:
    """构造排序键 occurred_at#event_id"""
    return f"{format_timestamp(occurred_at)}#{event_id}"
