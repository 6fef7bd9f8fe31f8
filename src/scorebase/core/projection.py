"""Projection Engine -- 事件到比赛状态的投影

apply_event 是纯函数：按 event_type 分派，输入旧状态，返回新状态。
ProjectionEngine 负责事务：在 BEGIN IMMEDIATE 内通过租户关联重读比赛、
检查投影台账、应用事件、写回状态并登记台账，失败则整体回滚。
reconcile 从事件日志补投影尚未登记的事件，用于修复“已落盘、未投影”的中间态。
事件早于比赛已投影的最新事件时，按 ordering_key 从赛程初始状态重建比赛，
终场比分因此覆盖其之前补投影的进球。
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from .exceptions import BadRequestError, NotFoundError
from .models.enums import EventType, GameStatus, validate_transition
from .models.event import GameEvent
from .models.game import Game, GameState
from .store.protocols import EventStore
from .store.transaction import immediate_transaction

if TYPE_CHECKING:
    from .standings import StandingsTrigger
    from .store import StoreGroup

log = structlog.get_logger()


def _apply_goal(state: GameState, event: GameEvent) -> GameState:
    team_id = event.payload.get("team_id")
    if team_id == state.home_team_id:
        return state.model_copy(update={"home_score": state.home_score + 1})
    if team_id == state.away_team_id:
        return state.model_copy(update={"away_score": state.away_score + 1})
    raise BadRequestError(f"Team {team_id} is not playing in game {event.game_id}")


def _apply_started(state: GameState, event: GameEvent) -> GameState:
    return state.model_copy(update={"status": GameStatus.LIVE})


def _apply_finalized(state: GameState, event: GameEvent) -> GameState:
    return state.model_copy(
        update={
            "status": GameStatus.FINAL,
            "home_score": event.payload["final_home_score"],
            "away_score": event.payload["final_away_score"],
        }
    )


def _apply_cancelled(state: GameState, event: GameEvent) -> GameState:
    return state.model_copy(update={"status": GameStatus.CANCELLED})


# 未登记的事件类型（PENALTY_ASSESSED / PERIOD_ENDED / SCORE_CORRECTED / EVENT_REVERSAL）
# 只保留在日志中用于审计，不修改投影
_HANDLERS: dict[EventType, Callable[[GameState, GameEvent], GameState]] = {
    EventType.GOAL_SCORED: _apply_goal,
    EventType.GAME_STARTED: _apply_started,
    EventType.GAME_FINALIZED: _apply_finalized,
    EventType.GAME_CANCELLED: _apply_cancelled,
}


def apply_event(state: GameState, event: GameEvent) -> GameState:
    """将单个事件应用到比赛状态（纯函数，不修改输入）

    Args:
        state: 当前比赛状态
        event: 要应用的事件

    Returns:
        新的比赛状态

    Raises:
        BadRequestError: GOAL_SCORED 的 team_id 不属于该比赛
    """
    handler = _HANDLERS.get(event.event_type)
    if handler is None:
        return state
    return handler(state, event)


@dataclass
class ProjectionResult:
    """单次投影结果"""

    game: Game
    applied: bool
    # 比赛进入 FINAL 或 FINAL 比分发生变化：需要重算积分榜
    finalized: bool

    @property
    def season_id(self) -> str:
        return self.game.season_id


@dataclass
class ReconcileReport:
    """对账结果统计"""

    total_events: int = 0
    already_projected: int = 0
    replayed: int = 0
    failed: int = 0
    standings_recalculated: int = 0
    elapsed_ms: int = 0


class ProjectionEngine:
    """比赛状态投影引擎

    同一投影库连接上的事务由写锁串行化，这把锁等同于比赛行锁：
    同一比赛的并发提交在此排队，事件日志写入与广播不受影响。
    """

    def __init__(self, stores: "StoreGroup") -> None:
        self._conn = stores.conn
        self._lock = stores.write_lock
        self._game_store = stores.game_store
        self._event_store = stores.event_store

    async def project(self, tenant_id: str, event: GameEvent) -> ProjectionResult:
        """在单个事务内将事件投影到比赛

        Raises:
            NotFoundError: 比赛不存在或不属于该租户
            BadRequestError: 事件与比赛不匹配（例如进球球队不在该比赛中）
        """
        async with immediate_transaction(self._conn, self._lock):
            game = await self._game_store.get_game(tenant_id, event.game_id)
            if game is None:
                raise NotFoundError(f"Game not found: {event.game_id}")

            # 同一事件重复投影为 no-op
            if await self._game_store.is_projected(event.event_id):
                return ProjectionResult(game=game, applied=False, finalized=False)

            before = GameState.from_game(game)
            latest = await self._game_store.latest_projected_ordering_key(game.id)
            if latest is not None and event.ordering_key < latest:
                after = await self._rebuild(tenant_id, game, event)
            else:
                after = apply_event(before, event)

            if after.status != before.status and not validate_transition(
                before.status, after.status
            ):
                await log.awarning(
                    "projection_transition_outside_state_machine",
                    game_id=game.id,
                    event_id=event.event_id,
                    from_status=before.status.value,
                    to_status=after.status.value,
                )

            if after != before:
                game = game.model_copy(
                    update={
                        "status": after.status,
                        "home_score": after.home_score,
                        "away_score": after.away_score,
                        "updated_at": datetime.now(UTC),
                    }
                )
                await self._game_store.update_game(game)

            await self._game_store.mark_projected(event)

        final_changed = after.status == GameStatus.FINAL and after != before
        return ProjectionResult(game=game, applied=True, finalized=final_changed)

    async def _rebuild(self, tenant_id: str, game: Game, event: GameEvent) -> GameState:
        """按 ordering_key 重放台账中的事件与当前事件"""
        projected = await self._game_store.list_projected_event_ids(game.id)
        state = GameState(
            home_team_id=game.home_team_id,
            away_team_id=game.away_team_id,
            status=GameStatus.SCHEDULED,
        )
        for past in await self._event_store.list_by_game(game.id, tenant_id):
            if past.event_id in projected or past.event_id == event.event_id:
                state = apply_event(state, past)
        await log.ainfo(
            "projection_rebuilt",
            game_id=game.id,
            event_id=event.event_id,
            replayed=len(projected) + 1,
        )
        return state

    async def projected_event_ids(self) -> set[str]:
        """投影台账中已登记的事件 ID"""
        return await self._game_store.list_projected_event_ids()


async def reconcile(
    event_store: EventStore,
    engine: ProjectionEngine,
    standings_trigger: "StandingsTrigger | None" = None,
) -> ReconcileReport:
    """补投影事件日志中尚未登记到台账的事件

    按 ordering_key 顺序重放；NotFound / BadRequest 计入失败并记录日志，不中断对账。
    若重放的事件结束了比赛或改变了终场比分，且提供了 standings_trigger，
    则重新计算对应赛季积分榜。

    Args:
        event_store: 事件库
        engine: 投影引擎
        standings_trigger: 可选的积分榜触发器

    Returns:
        对账统计
    """
    start_time = time.monotonic()
    report = ReconcileReport()

    events = await event_store.list_all()
    projected = await engine.projected_event_ids()
    report.total_events = len(events)

    await log.ainfo(
        "projection_reconcile_started",
        event_count=len(events),
        projected_count=len(projected),
    )

    seasons_to_recalculate: set[tuple[str, str]] = set()

    for event in events:
        if event.event_id in projected:
            report.already_projected += 1
            continue
        try:
            result = await engine.project(event.tenant_id, event)
        except (NotFoundError, BadRequestError) as e:
            report.failed += 1
            await log.awarning(
                "projection_reconcile_event_failed",
                event_id=event.event_id,
                game_id=event.game_id,
                tenant_id=event.tenant_id,
                error=e.message,
            )
            continue

        if result.applied:
            report.replayed += 1
        else:
            report.already_projected += 1
        if result.finalized:
            seasons_to_recalculate.add((event.tenant_id, result.season_id))

    if standings_trigger is not None:
        for tenant_id, season_id in sorted(seasons_to_recalculate):
            await standings_trigger.trigger(tenant_id, season_id)
            report.standings_recalculated += 1

    report.elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "projection_reconcile_completed",
        replayed=report.replayed,
        failed=report.failed,
        already_projected=report.already_projected,
        standings_recalculated=report.standings_recalculated,
        elapsed_ms=report.elapsed_ms,
    )
    return report
