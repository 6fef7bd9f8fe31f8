"""全局 pytest 配置 -- 临时 SQLite 数据库 + 联赛/赛季/球队/比赛种子数据"""

import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import pytest_asyncio
from scorebase.core.models import EventMetadata, Game, GameStatus
from scorebase.core.store import StoreGroup, create_store_group


@pytest_asyncio.fixture
async def store_group(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """提供已初始化的 StoreGroup（投影库 + 事件库各一个临时文件）"""
    sg = await create_store_group(
        str(tmp_path / "sqlite" / "scorebase.db"),
        str(tmp_path / "sqlite" / "events.db"),
    )
    yield sg
    await sg.close()


class Seeder:
    """直接写入投影库的种子数据工具（联赛 / 赛季 / 球队没有对外写接口）"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._sg = store_group

    async def league(self, tenant_id: str) -> str:
        league_id = str(uuid.uuid4())
        async with self._sg.write_lock:
            await self._sg.conn.execute(
                "INSERT INTO leagues (id, tenant_id, name) VALUES (?, ?, ?)",
                (league_id, tenant_id, "Test League"),
            )
        return league_id

    async def season(self, league_id: str) -> str:
        season_id = str(uuid.uuid4())
        async with self._sg.write_lock:
            await self._sg.conn.execute(
                "INSERT INTO seasons (id, league_id, name) VALUES (?, ?, ?)",
                (season_id, league_id, "2026"),
            )
        return season_id

    async def team(self, league_id: str) -> str:
        team_id = str(uuid.uuid4())
        async with self._sg.write_lock:
            await self._sg.conn.execute(
                "INSERT INTO teams (id, league_id, name) VALUES (?, ?, ?)",
                (team_id, league_id, f"Team {team_id[:4]}"),
            )
        return team_id

    async def game(
        self,
        season_id: str,
        home_team_id: str,
        away_team_id: str,
        status: GameStatus = GameStatus.SCHEDULED,
        home_score: int = 0,
        away_score: int = 0,
        scheduled_at: datetime | None = None,
    ) -> Game:
        game = Game(
            id=str(uuid.uuid4()),
            season_id=season_id,
            home_team_id=home_team_id,
            away_team_id=away_team_id,
            status=status,
            home_score=home_score,
            away_score=away_score,
            scheduled_at=scheduled_at,
            updated_at=datetime.now(UTC),
        )
        await self._sg.game_store.create_game(game)
        return game


@dataclass
class SeededLeague:
    """一个租户下的联赛、赛季、两支球队和一场 SCHEDULED 比赛"""

    tenant_id: str
    league_id: str
    season_id: str
    home_team_id: str
    away_team_id: str
    game: Game


@pytest_asyncio.fixture
async def seeder(store_group: StoreGroup) -> Seeder:
    return Seeder(store_group)


async def _seed_league(seeder: Seeder, tenant_id: str) -> SeededLeague:
    league_id = await seeder.league(tenant_id)
    season_id = await seeder.season(league_id)
    home = await seeder.team(league_id)
    away = await seeder.team(league_id)
    game = await seeder.game(season_id, home, away)
    return SeededLeague(
        tenant_id=tenant_id,
        league_id=league_id,
        season_id=season_id,
        home_team_id=home,
        away_team_id=away,
        game=game,
    )


@pytest_asyncio.fixture
async def seeded(seeder: Seeder) -> SeededLeague:
    """租户 tenant-a 的种子数据"""
    return await _seed_league(seeder, "tenant-a")


@pytest_asyncio.fixture
async def other_tenant(seeder: Seeder) -> SeededLeague:
    """租户 tenant-b 的种子数据（用于跨租户隔离测试）"""
    return await _seed_league(seeder, "tenant-b")


@pytest_asyncio.fixture
async def metadata() -> EventMetadata:
    return EventMetadata(user_id="scorekeeper-1", source="test")
