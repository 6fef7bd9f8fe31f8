"""structlog 配置模块

dev 模式：pretty print 可读输出
json 模式：结构化 JSON 输出，异常栈渲染为字符串字段
stdlib logging（uvicorn / aiosqlite / sse_starlette）经 ProcessorFormatter 走同一条处理链。
Logfire APM：LOGFIRE_SEND_TO_LOGFIRE 环境变量控制，false 时只输出本地日志。
"""

import logging
import os

import structlog
from fastapi import FastAPI

# 第三方 logger 的最低级别：aiosqlite 每条 SQL 一行 DEBUG，sse_starlette 每次 ping 一行，
# uvicorn.access 与 LoggingMiddleware 的 request_completed 重复
QUIET_LOGGERS: dict[str, int] = {
    "aiosqlite": logging.WARNING,
    "sse_starlette": logging.INFO,
    "uvicorn.access": logging.WARNING,
}


def _shared_processors(log_format: str) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
    return processors


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog 与 stdlib logging

    Args:
        log_format: "json" 或 "dev"，缺省读取 SCOREBASE_LOG_FORMAT（默认 dev）
        log_level: 日志级别名，缺省读取 SCOREBASE_LOG_LEVEL（默认 INFO）
    """
    log_format = log_format or os.environ.get("SCOREBASE_LOG_FORMAT", "dev")
    log_level = log_level or os.environ.get("SCOREBASE_LOG_LEVEL", "INFO")
    shared = _shared_processors(log_format)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(log_format),
            foreign_pre_chain=shared,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, root_logger.level))


def setup_logfire(app: FastAPI) -> None:
    """Logfire 可选初始化（需要安装 observability extra 并配置 LOGFIRE_TOKEN）

    LOGFIRE_SEND_TO_LOGFIRE="true" 时启用并为 app 注入 FastAPI instrumentation；
    初始化失败只记录警告，不影响事件写入。
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return
    try:
        import logfire

        logfire.configure()
        logfire.instrument_fastapi(app)
    except Exception as e:
        structlog.get_logger().warning("logfire_init_failed", error=str(e))
