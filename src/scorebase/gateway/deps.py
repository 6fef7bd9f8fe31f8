"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 与服务实例

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from scorebase.core.broadcast import BroadcastEngine
from scorebase.core.pipeline import EventIngestionPipeline
from scorebase.core.snapshot import SnapshotBuilder
from scorebase.core.standings import StandingsTrigger
from scorebase.core.store import StoreGroup

from .services.sse_hub import SSEHub


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_sse_hub(request: Request) -> SSEHub:
    """从 app.state 获取 SSEHub 实例"""
    return request.app.state.sse_hub


def get_pipeline(request: Request) -> EventIngestionPipeline:
    """从 app.state 获取事件写入编排器"""
    return request.app.state.pipeline


def get_snapshot_builder(request: Request) -> SnapshotBuilder:
    """从 app.state 获取快照生成器"""
    return request.app.state.snapshot_builder


def get_broadcaster(request: Request) -> BroadcastEngine:
    """从 app.state 获取广播引擎"""
    return request.app.state.broadcaster


def get_standings_trigger(request: Request) -> StandingsTrigger:
    """从 app.state 获取积分榜触发器"""
    return request.app.state.standings_trigger
