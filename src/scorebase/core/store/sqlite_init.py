"""SQLite 数据库初始化

两个独立数据库：
- 事件库（events.db）：append-only 事件日志
- 投影库（scorebase.db）：leagues / seasons / teams / games / standings / connections / projected_events

两个库都以 autocommit 模式打开（isolation_level=None），
需要多语句原子性的地方显式使用 BEGIN IMMEDIATE（见 transaction.py）。
"""

from pathlib import Path

import aiosqlite

# events 表 DDL
_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS events (
    event_id            TEXT PRIMARY KEY,
    game_id             TEXT NOT NULL,
    tenant_id           TEXT NOT NULL,
    event_type          TEXT NOT NULL,
    schema_version      TEXT NOT NULL DEFAULT '1.0',
    occurred_at         TEXT NOT NULL,
    ordering_key        TEXT NOT NULL,
    payload             TEXT NOT NULL DEFAULT '{}',
    metadata            TEXT NOT NULL DEFAULT '{}',
    idempotency_key     TEXT,
    recorded_at         TEXT NOT NULL,
    retention_expiry    TEXT NOT NULL,
    spatial_coordinates TEXT
);
"""

_EVENTS_INDEXES = [
    # 按比赛全序读取
    "CREATE INDEX IF NOT EXISTS idx_events_game_order ON events(game_id, ordering_key);",
    # 按租户全序读取 / 时间范围查询
    "CREATE INDEX IF NOT EXISTS idx_events_tenant_order ON events(tenant_id, ordering_key);",
    # 幂等键唯一约束（仅对非 NULL 值生效），关闭并发提交的竞争窗口
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_events_idempotency_key "
        "ON events(tenant_id, idempotency_key) WHERE idempotency_key IS NOT NULL;"
    ),
    # 撤销事件查询
    "CREATE INDEX IF NOT EXISTS idx_events_tenant_type ON events(tenant_id, event_type);",
    "CREATE INDEX IF NOT EXISTS idx_events_retention ON events(retention_expiry);",
]

# 投影库 DDL
_LEAGUES_DDL = """
CREATE TABLE IF NOT EXISTS leagues (
    id          TEXT PRIMARY KEY,
    tenant_id   TEXT NOT NULL,
    name        TEXT NOT NULL DEFAULT ''
);
"""

_SEASONS_DDL = """
CREATE TABLE IF NOT EXISTS seasons (
    id          TEXT PRIMARY KEY,
    league_id   TEXT NOT NULL,
    name        TEXT NOT NULL DEFAULT '',

    FOREIGN KEY (league_id) REFERENCES leagues(id)
);
"""

_TEAMS_DDL = """
CREATE TABLE IF NOT EXISTS teams (
    id          TEXT PRIMARY KEY,
    league_id   TEXT NOT NULL,
    name        TEXT NOT NULL DEFAULT '',

    FOREIGN KEY (league_id) REFERENCES leagues(id)
);
"""

_GAMES_DDL = """
CREATE TABLE IF NOT EXISTS games (
    id            TEXT PRIMARY KEY,
    season_id     TEXT NOT NULL,
    home_team_id  TEXT NOT NULL,
    away_team_id  TEXT NOT NULL,
    status        TEXT NOT NULL DEFAULT 'SCHEDULED',
    home_score    INTEGER NOT NULL DEFAULT 0,
    away_score    INTEGER NOT NULL DEFAULT 0,
    scheduled_at  TEXT,
    updated_at    TEXT NOT NULL,

    FOREIGN KEY (season_id) REFERENCES seasons(id)
);
"""

_STANDINGS_DDL = """
CREATE TABLE IF NOT EXISTS standings (
    season_id          TEXT NOT NULL,
    team_id            TEXT NOT NULL,
    games_played       INTEGER NOT NULL DEFAULT 0,
    wins               INTEGER NOT NULL DEFAULT 0,
    losses             INTEGER NOT NULL DEFAULT 0,
    ties               INTEGER NOT NULL DEFAULT 0,
    points             INTEGER NOT NULL DEFAULT 0,
    goals_for          INTEGER NOT NULL DEFAULT 0,
    goals_against      INTEGER NOT NULL DEFAULT 0,
    goal_differential  INTEGER NOT NULL DEFAULT 0,
    streak             TEXT,
    updated_at         TEXT NOT NULL,

    PRIMARY KEY (season_id, team_id)
);
"""

_CONNECTIONS_DDL = """
CREATE TABLE IF NOT EXISTS connections (
    connection_id  TEXT PRIMARY KEY,
    game_id        TEXT NOT NULL,
    tenant_id      TEXT NOT NULL,
    user_id        TEXT NOT NULL,
    connected_at   TEXT NOT NULL,
    expires_at     TEXT NOT NULL
);
"""

# 已投影事件台账：同一事件重复投影为 no-op，对账任务据此找出未投影事件
_PROJECTED_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS projected_events (
    event_id      TEXT PRIMARY KEY,
    game_id       TEXT NOT NULL,
    tenant_id     TEXT NOT NULL,
    ordering_key  TEXT NOT NULL,
    projected_at  TEXT NOT NULL
);
"""

_PROJECTION_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_leagues_tenant ON leagues(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_seasons_league ON seasons(league_id);",
    "CREATE INDEX IF NOT EXISTS idx_teams_league ON teams(league_id);",
    "CREATE INDEX IF NOT EXISTS idx_games_season ON games(season_id, status);",
    "CREATE INDEX IF NOT EXISTS idx_connections_game ON connections(game_id, tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_connections_expires ON connections(expires_at);",
    "CREATE INDEX IF NOT EXISTS idx_projected_game ON projected_events(game_id, ordering_key);",
]


async def open_connection(db_path: str) -> aiosqlite.Connection:
    """以 autocommit 模式打开 SQLite 连接，确保目录存在"""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(db_path, isolation_level=None)
    conn.row_factory = aiosqlite.Row
    return conn


async def _set_pragmas(conn: aiosqlite.Connection) -> None:
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")


async def init_event_db(conn: aiosqlite.Connection) -> None:
    """初始化事件库：PRAGMA + events 表 + 索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await _set_pragmas(conn)
    await conn.execute(_EVENTS_DDL)
    for idx_sql in _EVENTS_INDEXES:
        await conn.execute(idx_sql)


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化投影库：PRAGMA + 表 + 索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await _set_pragmas(conn)

    for ddl in (
        _LEAGUES_DDL,
        _SEASONS_DDL,
        _TEAMS_DDL,
        _GAMES_DDL,
        _STANDINGS_DDL,
        _CONNECTIONS_DDL,
        _PROJECTED_EVENTS_DDL,
    ):
        await conn.execute(ddl)

    for idx_sql in _PROJECTION_INDEXES:
        await conn.execute(idx_sql)


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
