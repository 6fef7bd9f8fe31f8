"""观众 SSE 流路由

GET /v1/stream/games/{game_id}: 注册观众连接，推送 initial_snapshot，
之后转发 snapshot_update，并定期心跳保活。比赛进入终态后推送最后一条快照并关闭流。
"""

import asyncio
import json
from datetime import UTC, datetime, timedelta

import structlog
from fastapi import APIRouter, Depends
from scorebase.core.config import CONNECTION_TTL_HOURS, SSE_HEARTBEAT_INTERVAL
from scorebase.core.models import TERMINAL_STATES, Connection, GameStatus, MessageType
from sse_starlette.sse import EventSourceResponse
from ulid import ULID

from ..auth import Claims, get_claims
from ..deps import get_broadcaster, get_snapshot_builder, get_sse_hub, get_store_group

log = structlog.get_logger()

router = APIRouter()


def _is_final_message(data: str) -> bool:
    """消息中的快照是否已处于终态"""
    try:
        status = GameStatus(json.loads(data)["snapshot"]["status"])
    except (ValueError, KeyError, TypeError):
        return False
    return status in TERMINAL_STATES


@router.get("/v1/stream/games/{game_id}")
async def stream_game(
    game_id: str,
    claims: Claims = Depends(get_claims),
    store_group=Depends(get_store_group),
    sse_hub=Depends(get_sse_hub),
    snapshot_builder=Depends(get_snapshot_builder),
    broadcaster=Depends(get_broadcaster),
):
    """观众 SSE 流端点

    1. 确认比赛属于该租户（否则 404）
    2. 注册连接并推送 initial_snapshot
    3. 实时转发 snapshot_update
    4. 心跳保活；连接被判定失效（队列溢出）时结束
    5. 断开时从注册表删除连接
    """
    snapshot = await snapshot_builder.generate(claims.tenant_id, game_id)

    now = datetime.now(UTC)
    connection = Connection(
        connection_id=str(ULID()),
        game_id=game_id,
        tenant_id=claims.tenant_id,
        user_id=claims.user_id,
        connected_at=now,
        expires_at=now + timedelta(hours=CONNECTION_TTL_HOURS),
    )
    connection_id = connection.connection_id

    # 连接只在响应体开始迭代后注册，客户端提前断开时不会留下连接
    async def event_generator():
        try:
            queue = sse_hub.attach(connection_id)
            await store_group.connection_store.register(connection)
            await broadcaster.send_to_connection(
                connection, snapshot, MessageType.INITIAL_SNAPSHOT
            )
            await log.ainfo(
                "viewer_connected",
                connection_id=connection_id,
                game_id=game_id,
                user_id=claims.user_id,
            )

            while True:
                try:
                    data = await asyncio.wait_for(queue.get(), timeout=SSE_HEARTBEAT_INTERVAL)
                except TimeoutError:
                    if not sse_hub.is_attached(connection_id):
                        return
                    yield {"comment": "heartbeat"}
                    continue

                message_type = json.loads(data).get("message_type", "message")
                yield {"event": message_type, "data": data}
                if _is_final_message(data):
                    return
        finally:
            sse_hub.detach(connection_id)
            await store_group.connection_store.remove(connection_id)
            await log.ainfo("viewer_disconnected", connection_id=connection_id)

    return EventSourceResponse(event_generator())
