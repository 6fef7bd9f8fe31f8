"""gateway 测试配置 -- FastAPI app + httpx AsyncClient

app 与根 conftest 的 store_group / seeder 共享同一组数据库，
种子数据直接写入投影库，HTTP 请求通过 ASGITransport 发送（不经过 lifespan）。
"""

import os
from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

_ENV_KEYS = ["SCOREBASE_DB_PATH", "SCOREBASE_EVENT_DB_PATH", "LOGFIRE_SEND_TO_LOGFIRE"]


@pytest_asyncio.fixture
async def app(store_group, tmp_path):
    """创建测试用 FastAPI app 实例（手动装配 app.state）"""
    os.environ["SCOREBASE_DB_PATH"] = str(tmp_path / "sqlite" / "scorebase.db")
    os.environ["SCOREBASE_EVENT_DB_PATH"] = str(tmp_path / "sqlite" / "events.db")
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from scorebase.gateway.main import create_app, init_app_state

    application = create_app()
    init_app_state(application, store_group)
    yield application

    for key in _ENV_KEYS:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def writer_headers(seeded) -> dict[str, str]:
    """tenant-a 记分员身份"""
    return {
        "X-Tenant-ID": seeded.tenant_id,
        "X-User-ID": "scorekeeper-1",
        "X-User-Roles": "scorekeeper",
    }


@pytest_asyncio.fixture
async def viewer_headers(seeded) -> dict[str, str]:
    """tenant-a 普通观众身份（无写权限）"""
    return {"X-Tenant-ID": seeded.tenant_id, "X-User-ID": "viewer-1", "X-User-Roles": "viewer"}
