"""配置常量模块 -- 可通过环境变量覆盖

包含事件库/投影库路径、事件保留窗口、连接 TTL、快照参数等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("SCOREBASE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取投影库（games/standings/connections）SQLite 路径"""
    return os.environ.get(
        "SCOREBASE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "scorebase.db"),
    )


def get_event_db_path() -> str:
    """获取事件日志库 SQLite 路径

    事件日志与投影库是两个独立的存储，不存在跨库事务。
    """
    return os.environ.get(
        "SCOREBASE_EVENT_DB_PATH",
        str(_get_base_dir() / "sqlite" / "events.db"),
    )


# 事件保留窗口（天），到期后由独立清理命令删除
EVENT_RETENTION_DAYS: int = int(os.environ.get("SCOREBASE_EVENT_RETENTION_DAYS", "90"))

# 观众连接 TTL（小时），过期连接不再参与广播
CONNECTION_TTL_HOURS: int = int(os.environ.get("SCOREBASE_CONNECTION_TTL_HOURS", "24"))

# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(os.environ.get("SCOREBASE_SSE_HEARTBEAT_INTERVAL", "15"))

# 每个观众连接的待发送消息队列上限，队列满视为连接失效
CONNECTION_QUEUE_SIZE: int = int(os.environ.get("SCOREBASE_CONNECTION_QUEUE_SIZE", "32"))

# 快照中携带的最近事件数量
RECENT_EVENTS_LIMIT: int = 10

# 事件与快照 schema 版本
EVENT_SCHEMA_VERSION: str = "1.0"
SNAPSHOT_VERSION: str = "1.0"
