"""集成测试共享 fixture"""

import os
from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient


@pytest_asyncio.fixture
async def integration_app(store_group, tmp_path):
    """集成测试用 FastAPI app"""
    os.environ["SCOREBASE_DB_PATH"] = str(tmp_path / "sqlite" / "scorebase.db")
    os.environ["SCOREBASE_EVENT_DB_PATH"] = str(tmp_path / "sqlite" / "events.db")
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from scorebase.gateway.main import create_app, init_app_state

    app = create_app()
    init_app_state(app, store_group)

    yield app

    os.environ.pop("SCOREBASE_DB_PATH", None)
    os.environ.pop("SCOREBASE_EVENT_DB_PATH", None)
    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
