"""TraceMiddleware -- 为比赛相关请求绑定 game_id，贯穿事件写入到广播的日志"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


def extract_game_id(path: str) -> str | None:
    """从 /v1/games/{game_id}/... 或 /v1/stream/games/{game_id} 中提取 game_id"""
    parts = [p for p in path.split("/") if p]
    for i, part in enumerate(parts):
        if part == "games" and i + 1 < len(parts):
            return parts[i + 1]
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """比赛级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        game_id = extract_game_id(request.url.path)
        if game_id:
            structlog.contextvars.bind_contextvars(game_id=game_id)

        return await call_next(request)
