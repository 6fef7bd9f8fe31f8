"""Snapshot Builder -- 生成推送给观众的比赛快照

快照 = 投影后的比赛状态 + 最近 10 条事件（最新在前）。
节次与时钟不在 games 表中，而是从最近事件推导。
"""

from datetime import UTC, datetime

import structlog

from .config import RECENT_EVENTS_LIMIT
from .exceptions import NotFoundError
from .models.enums import EventType, GameStatus
from .models.event import GameEvent
from .models.game import Game
from .models.payloads import clock_to_seconds
from .models.snapshot import GameSnapshot
from .store.event_store import SqliteEventStore
from .store.game_store import SqliteGameStore

log = structlog.get_logger()


def derive_period(game: Game, recent_events: list[GameEvent]) -> int:
    """取最近事件中最大的 period；比赛进行中时 PERIOD_ENDED 推进到下一节"""
    period = 1
    for event in recent_events:
        value = event.payload.get("period")
        if not isinstance(value, int) or isinstance(value, bool):
            continue
        if event.event_type == EventType.PERIOD_ENDED and game.status == GameStatus.LIVE:
            value += 1
        period = max(period, value)
    return period


def derive_clock_seconds(recent_events: list[GameEvent]) -> int:
    """取最新事件的 time_remaining（MM:SS）换算为秒，缺省 0"""
    if not recent_events:
        return 0
    seconds = clock_to_seconds(recent_events[0].payload.get("time_remaining"))
    return seconds if seconds is not None else 0


class SnapshotBuilder:
    """比赛快照生成器"""

    def __init__(
        self,
        game_store: SqliteGameStore,
        event_store: SqliteEventStore,
        recent_limit: int = RECENT_EVENTS_LIMIT,
    ) -> None:
        self._game_store = game_store
        self._event_store = event_store
        self._recent_limit = recent_limit

    async def build(self, tenant_id: str, game: Game) -> GameSnapshot:
        """基于已加载的比赛状态生成快照"""
        recent_events = await self._event_store.list_recent_by_game(
            game.id, tenant_id, self._recent_limit
        )
        return GameSnapshot(
            game_id=game.id,
            home_team_id=game.home_team_id,
            away_team_id=game.away_team_id,
            home_score=game.home_score,
            away_score=game.away_score,
            status=game.status,
            period=derive_period(game, recent_events),
            clock_seconds=derive_clock_seconds(recent_events),
            recent_events=recent_events,
            generated_at=datetime.now(UTC),
        )

    async def generate(self, tenant_id: str, game_id: str) -> GameSnapshot:
        """加载比赛并生成快照

        Raises:
            NotFoundError: 比赛不存在或不属于该租户
        """
        game = await self._game_store.get_game(tenant_id, game_id)
        if game is None:
            raise NotFoundError(f"Game not found: {game_id}")

        snapshot = await self.build(tenant_id, game)
        await log.adebug(
            "snapshot_generated",
            tenant_id=tenant_id,
            game_id=game_id,
            recent_events_count=len(snapshot.recent_events),
        )
        return snapshot
