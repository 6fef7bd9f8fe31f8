"""异常处理 -- 领域异常统一转换为 {"error": {...}} 响应"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from scorebase.core.exceptions import ScorebaseError
from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse

log = structlog.get_logger()

_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
) -> JSONResponse:
    """构造错误响应体"""
    error: dict = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})


async def handle_scorebase_error(request: Request, exc: ScorebaseError) -> JSONResponse:
    if exc.status_code >= 500:
        await log.aerror("request_failed", code=exc.code, error=exc.message)
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    return error_response(exc.status_code, code, str(exc.detail))


async def handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = {
        ".".join(str(part) for part in err["loc"]): err["msg"] for err in exc.errors()
    }
    return error_response(400, "BAD_REQUEST", "Invalid request", details)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    # 未知错误只记录日志，响应中不暴露内部细节
    await log.aexception("unhandled_error", error_type=type(exc).__name__)
    return error_response(500, "INTERNAL_ERROR", "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """注册全部异常处理器"""
    app.add_exception_handler(ScorebaseError, handle_scorebase_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)
