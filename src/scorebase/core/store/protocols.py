"""Store Protocol 接口定义

定义 EventStore、ConnectionRegistry、ConnectionSender 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from datetime import datetime
from typing import Protocol

from ..models.connection import Connection
from ..models.event import GameEvent, NewGameEvent


class EventStore(Protocol):
    """Event 存储接口

    事件表 append-only：只允许插入，过期清理除外。
    """

    async def append(self, new_event: NewGameEvent) -> GameEvent:
        """追加事件，幂等键冲突时抛出 DuplicateIdempotencyKeyError"""
        ...

    async def find_by_idempotency_key(
        self,
        tenant_id: str,
        idempotency_key: str,
    ) -> GameEvent | None:
        """按 (tenant_id, idempotency_key) 查找事件"""
        ...

    async def list_by_game(self, game_id: str, tenant_id: str) -> list[GameEvent]:
        """按 ordering_key 正序查询比赛事件"""
        ...

    async def list_by_tenant(
        self,
        tenant_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[GameEvent]:
        """按 ordering_key 正序查询租户事件"""
        ...

    async def get(self, tenant_id: str, event_id: str) -> GameEvent | None:
        """查询单个事件（跨租户视为不存在）"""
        ...

    async def is_reversed(self, tenant_id: str, event_id: str) -> bool:
        """事件是否已被 EVENT_REVERSAL 引用"""
        ...

    async def list_all(self) -> list[GameEvent]:
        """按 ordering_key 正序查询全部事件（投影对账）"""
        ...


class ConnectionRegistry(Protocol):
    """观众连接注册表接口"""

    async def register(self, connection: Connection) -> None:
        """登记连接"""
        ...

    async def remove(self, connection_id: str) -> None:
        """删除连接（幂等）"""
        ...

    async def list_by_game(self, game_id: str, tenant_id: str) -> list[Connection]:
        """查询比赛的有效连接"""
        ...


class ConnectionSender(Protocol):
    """向单个观众连接投递消息

    永久性失败时抛出 DeliveryError。
    """

    async def send(self, connection_id: str, data: str) -> None:
        ...
