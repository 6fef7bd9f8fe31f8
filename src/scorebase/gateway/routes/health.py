"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含投影库与事件库连通性、磁盘空间。
"""

import shutil

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 投影库连通性
    2. event_log: 事件库连通性
    3. disk_space_mb: 磁盘剩余空间
    """
    checks = {}
    all_ok = True
    store_group = request.app.state.store_group

    for name, conn in (("sqlite", store_group.conn), ("event_log", store_group.event_conn)):
        try:
            cursor = await conn.execute("SELECT 1")
            await cursor.fetchone()
            checks[name] = "ok"
        except Exception as e:
            log.warning("readiness_check_failed", check=name, error=str(e))
            checks[name] = f"error: {str(e)}"
            all_ok = False

    try:
        disk_usage = shutil.disk_usage("/")
        checks["disk_space_mb"] = disk_usage.free // (1024 * 1024)
    except Exception:
        checks["disk_space_mb"] = 0
        all_ok = False

    checks["viewer_connections"] = request.app.state.sse_hub.connection_count

    status_code = 200 if all_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
