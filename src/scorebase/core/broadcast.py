"""Broadcast Engine -- 向比赛的所有观众连接扇出快照

单个连接的投递失败不会中断其他投递，也不会传递给调用方：
失败被记录日志，并触发该连接从注册表中删除（删除失败同样只记录日志）。
唯一会传递给调用方的失败是注册表查询本身。
"""

import asyncio
import json
from datetime import UTC, datetime
from typing import NamedTuple

import structlog

from .models.connection import Connection
from .models.enums import MessageType
from .models.snapshot import GameSnapshot, ViewerMessage
from .store.protocols import ConnectionRegistry, ConnectionSender

log = structlog.get_logger()


class BroadcastResult(NamedTuple):
    """广播结果：成功与失败的投递数"""

    delivered: int
    failed: int


def serialize_message(snapshot: GameSnapshot, message_type: MessageType) -> str:
    """序列化 {message_type, timestamp, snapshot} 消息"""
    message = ViewerMessage(
        message_type=message_type,
        timestamp=datetime.now(UTC),
        snapshot=snapshot,
    )
    return json.dumps(message.model_dump(mode="json"), ensure_ascii=False)


class BroadcastEngine:
    """快照扇出引擎"""

    def __init__(self, registry: ConnectionRegistry, sender: ConnectionSender) -> None:
        self._registry = registry
        self._sender = sender

    async def broadcast(
        self,
        tenant_id: str,
        game_id: str,
        snapshot: GameSnapshot,
        message_type: MessageType = MessageType.SNAPSHOT_UPDATE,
    ) -> BroadcastResult:
        """向 (game_id, tenant_id) 的所有连接投递快照

        所有投递尝试（成功或已处理的失败）完成后才返回。

        Raises:
            Exception: 仅当注册表查询失败时
        """
        connections = await self._registry.list_by_game(game_id, tenant_id)
        if not connections:
            return BroadcastResult(delivered=0, failed=0)

        data = serialize_message(snapshot, message_type)
        outcomes = await asyncio.gather(
            *(self._deliver(connection, data) for connection in connections)
        )
        delivered = sum(1 for ok in outcomes if ok)
        result = BroadcastResult(delivered=delivered, failed=len(outcomes) - delivered)

        await log.ainfo(
            "broadcast_completed",
            tenant_id=tenant_id,
            game_id=game_id,
            message_type=message_type.value,
            delivered=result.delivered,
            failed=result.failed,
        )
        return result

    async def send_to_connection(
        self,
        connection: Connection,
        snapshot: GameSnapshot,
        message_type: MessageType = MessageType.INITIAL_SNAPSHOT,
    ) -> bool:
        """向单个连接投递快照（观众连接建立时推送 initial_snapshot）"""
        return await self._deliver(connection, serialize_message(snapshot, message_type))

    async def _deliver(self, connection: Connection, data: str) -> bool:
        try:
            await self._sender.send(connection.connection_id, data)
            return True
        except Exception as e:
            await log.awarning(
                "broadcast_delivery_failed",
                connection_id=connection.connection_id,
                game_id=connection.game_id,
                error=str(e),
            )

        try:
            await self._registry.remove(connection.connection_id)
        except Exception as e:
            await log.aerror(
                "broadcast_connection_remove_failed",
                connection_id=connection.connection_id,
                error=str(e),
            )
        return False
