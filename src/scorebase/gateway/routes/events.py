"""事件路由

POST /v1/games/{game_id}/events: 提交比赛事件（新事件 201，幂等命中 200）
GET  /v1/games/{game_id}/events: 按比赛查询事件
GET  /v1/events: 按租户查询事件，支持 start / end / limit
GET  /v1/events/{event_id}: 查询单个事件及其撤销状态
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel, Field
from scorebase.core.exceptions import NotFoundError
from scorebase.core.models import EventMetadata, GameEvent
from starlette.responses import JSONResponse

from ..auth import Claims, get_claims, require_writer
from ..deps import get_pipeline, get_store_group

router = APIRouter()


class SubmitEventRequest(BaseModel):
    """事件提交请求体

    payload 与 spatial_coordinates 不在此处校验，由 Event Validator 给出字段级错误。
    """

    event_type: str = Field(description="事件类型")
    payload: Any = Field(default_factory=dict, description="事件 payload")
    occurred_at: datetime | None = Field(default=None, description="事件发生时间")
    idempotency_key: str | None = Field(default=None, description="幂等键")
    spatial_coordinates: Any = Field(default=None, description="归一化场地坐标")


def _event_json(event: GameEvent) -> dict:
    return event.model_dump(mode="json")


@router.post("/v1/games/{game_id}/events")
async def submit_event(
    game_id: str,
    body: SubmitEventRequest,
    request: Request,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    claims: Claims = Depends(get_claims),
    pipeline=Depends(get_pipeline),
):
    """提交比赛事件

    - 新事件返回 201 Created
    - 幂等键已存在返回 200 OK 和已有事件
    """
    require_writer(claims)

    metadata = EventMetadata(
        user_id=claims.user_id,
        source="api",
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    result = await pipeline.submit(
        tenant_id=claims.tenant_id,
        game_id=game_id,
        event_type=body.event_type,
        payload=body.payload,
        metadata=metadata,
        idempotency_key=idempotency_key or body.idempotency_key,
        occurred_at=body.occurred_at,
        spatial_coordinates=body.spatial_coordinates,
    )

    return JSONResponse(
        status_code=200 if result.replayed else 201,
        content={
            "event": _event_json(result.event),
            "replayed": result.replayed,
        },
    )


@router.get("/v1/games/{game_id}/events")
async def list_game_events(
    game_id: str,
    claims: Claims = Depends(get_claims),
    pipeline=Depends(get_pipeline),
):
    """按 ordering_key 正序查询比赛事件"""
    events = await pipeline.list_events(claims.tenant_id, game_id)
    return {"events": [_event_json(e) for e in events]}


@router.get("/v1/events")
async def list_tenant_events(
    start: datetime | None = Query(default=None, description="起始时间（含）"),
    end: datetime | None = Query(default=None, description="结束时间（含）"),
    limit: int | None = Query(default=None, ge=1, le=1000, description="最多返回条数"),
    claims: Claims = Depends(get_claims),
    store_group=Depends(get_store_group),
):
    """按 ordering_key 正序查询租户事件"""
    events = await store_group.event_store.list_by_tenant(
        claims.tenant_id, start=start, end=end, limit=limit
    )
    return {"events": [_event_json(e) for e in events]}


@router.get("/v1/events/{event_id}")
async def get_event(
    event_id: str,
    claims: Claims = Depends(get_claims),
    store_group=Depends(get_store_group),
):
    """查询单个事件，附带是否已被撤销"""
    event = await store_group.event_store.get(claims.tenant_id, event_id)
    if event is None:
        raise NotFoundError(f"Event not found: {event_id}")
    reversed_ = await store_group.event_store.is_reversed(claims.tenant_id, event_id)
    return {"event": _event_json(event), "reversed": reversed_}
