"""FastAPI 应用主文件

app 创建 + lifespan 管理：Store 初始化/关闭 + 事件写入编排器装配 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from scorebase.core.broadcast import BroadcastEngine
from scorebase.core.config import get_db_path, get_event_db_path
from scorebase.core.pipeline import EventIngestionPipeline
from scorebase.core.projection import ProjectionEngine
from scorebase.core.snapshot import SnapshotBuilder
from scorebase.core.standings import StandingsTrigger
from scorebase.core.store import StoreGroup, create_store_group

from .errors import register_exception_handlers
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import events, health, snapshot, standings, stream
from .services.sse_hub import SSEHub

log = structlog.get_logger()


def init_app_state(app: FastAPI, store_group: StoreGroup) -> None:
    """装配 Store、SSEHub 与各引擎到 app.state"""
    sse_hub = SSEHub()
    snapshot_builder = SnapshotBuilder(store_group.game_store, store_group.event_store)
    broadcaster = BroadcastEngine(store_group.connection_store, sse_hub)
    standings_trigger = StandingsTrigger(store_group.standings_store)

    app.state.store_group = store_group
    app.state.sse_hub = sse_hub
    app.state.snapshot_builder = snapshot_builder
    app.state.broadcaster = broadcaster
    app.state.standings_trigger = standings_trigger
    app.state.pipeline = EventIngestionPipeline(
        event_store=store_group.event_store,
        game_store=store_group.game_store,
        projection=ProjectionEngine(store_group),
        snapshots=snapshot_builder,
        broadcaster=broadcaster,
        standings_trigger=standings_trigger,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化两个数据库，关闭时清理连接"""
    db_path = get_db_path()
    event_db_path = get_event_db_path()
    store_group = await create_store_group(db_path, event_db_path)
    init_app_state(app, store_group)
    log.info("gateway_started", db_path=db_path, event_db_path=event_db_path)

    yield

    if hasattr(app.state, "store_group") and app.state.store_group:
        await app.state.store_group.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Scorebase Gateway",
        version="0.1.0",
        description="比赛事件写入、投影与实时广播 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()
    setup_logfire(app)

    register_exception_handlers(app)

    app.include_router(events.router, tags=["events"])
    app.include_router(snapshot.router, tags=["snapshot"])
    app.include_router(standings.router, tags=["standings"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
