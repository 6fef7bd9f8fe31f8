"""EventIngestionPipeline 测试

测试内容：
1. 正常提交：写入日志、投影、广播
2. 幂等：重复提交返回已有事件；并发竞争由唯一索引兜底
3. 校验 / 比赛不存在 / 终态冲突时不写入任何数据
4. 投影失败时事件保留在日志中
5. 比赛结束触发积分榜重算；积分榜与广播失败不影响提交
"""

import asyncio
import json
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from scorebase.core.broadcast import BroadcastEngine
from scorebase.core.exceptions import (
    BadRequestError,
    ConflictWithTerminalStateError,
    EventValidationError,
    NotFoundError,
    ProjectionFailedError,
    UnknownEventTypeError,
)
from scorebase.core.models import Connection, EventMetadata, GameStatus
from scorebase.core.pipeline import EventIngestionPipeline
from scorebase.core.projection import ProjectionEngine
from scorebase.core.snapshot import SnapshotBuilder
from scorebase.core.standings import StandingsTrigger

T0 = datetime(2026, 3, 1, 19, 0, tzinfo=UTC)
PLAYER = "0b6f3a2c-1c1e-4a53-8b7e-6fd2b1f0f3c4"


class RecordingSender:
    def __init__(self) -> None:
        self.messages: list[tuple[str, dict]] = []

    async def send(self, connection_id: str, data: str) -> None:
        self.messages.append((connection_id, json.loads(data)))


@pytest_asyncio.fixture
async def sender() -> RecordingSender:
    return RecordingSender()


@pytest_asyncio.fixture
async def pipeline(store_group, sender) -> EventIngestionPipeline:
    return EventIngestionPipeline(
        event_store=store_group.event_store,
        game_store=store_group.game_store,
        projection=ProjectionEngine(store_group),
        snapshots=SnapshotBuilder(store_group.game_store, store_group.event_store),
        broadcaster=BroadcastEngine(store_group.connection_store, sender),
        standings_trigger=StandingsTrigger(store_group.standings_store),
    )


def _goal(team_id: str) -> dict:
    return {"team_id": team_id, "player_id": PLAYER, "period": 1, "time_remaining": "10:00"}


async def _register_viewer(store_group, seeded, connection_id: str = "viewer-1") -> None:
    now = datetime.now(UTC)
    await store_group.connection_store.register(
        Connection(
            connection_id=connection_id,
            game_id=seeded.game.id,
            tenant_id=seeded.tenant_id,
            user_id="viewer",
            connected_at=now,
            expires_at=now + timedelta(hours=24),
        )
    )


class TestSubmit:
    async def test_new_event_projected_and_broadcast(
        self, pipeline, store_group, seeded, metadata, sender
    ):
        await _register_viewer(store_group, seeded)

        result = await pipeline.submit(
            seeded.tenant_id,
            seeded.game.id,
            "GOAL_SCORED",
            _goal(seeded.home_team_id),
            metadata,
        )

        assert result.replayed is False
        assert result.projection_applied is True
        assert result.event.payload["team_id"] == seeded.home_team_id
        game = await store_group.game_store.get_game(seeded.tenant_id, seeded.game.id)
        assert game.home_score == 1

        assert len(sender.messages) == 1
        connection_id, message = sender.messages[0]
        assert connection_id == "viewer-1"
        assert message["message_type"] == "snapshot_update"
        assert message["snapshot"]["home_score"] == 1
        assert message["snapshot"]["recent_events"][0]["event_id"] == result.event.event_id

    async def test_caller_occurred_at_and_coordinates_kept(
        self, pipeline, seeded, metadata
    ):
        occurred_at = datetime(2026, 3, 1, 19, 5, tzinfo=UTC)
        result = await pipeline.submit(
            seeded.tenant_id,
            seeded.game.id,
            "GOAL_SCORED",
            _goal(seeded.away_team_id),
            metadata,
            occurred_at=occurred_at,
            spatial_coordinates={"x": 0.3, "y": 0.7},
        )

        assert result.event.occurred_at == occurred_at
        assert result.event.spatial_coordinates.x == 0.3


class TestIdempotency:
    async def test_replay_returns_existing_event(
        self, pipeline, store_group, seeded, metadata, sender
    ):
        await _register_viewer(store_group, seeded)
        first = await pipeline.submit(
            seeded.tenant_id, seeded.game.id, "GOAL_SCORED",
            _goal(seeded.home_team_id), metadata, idempotency_key="goal-1",
        )
        second = await pipeline.submit(
            seeded.tenant_id, seeded.game.id, "GOAL_SCORED",
            _goal(seeded.home_team_id), metadata, idempotency_key="goal-1",
        )

        assert second.replayed is True
        assert second.event.event_id == first.event.event_id
        events = await store_group.event_store.list_by_game(seeded.game.id, seeded.tenant_id)
        assert len(events) == 1
        game = await store_group.game_store.get_game(seeded.tenant_id, seeded.game.id)
        assert game.home_score == 1
        # 重放不广播
        assert len(sender.messages) == 1

    async def test_replay_skips_validation(self, pipeline, seeded, metadata):
        first = await pipeline.submit(
            seeded.tenant_id, seeded.game.id, "GAME_STARTED",
            {"start_time": "2026-03-01T19:00:00Z"}, metadata, idempotency_key="start",
        )
        replay = await pipeline.submit(
            seeded.tenant_id, seeded.game.id, "GAME_STARTED", {}, metadata,
            idempotency_key="start",
        )
        assert replay.event.event_id == first.event.event_id

    async def test_lookup_race_resolved_by_unique_index(
        self, pipeline, store_group, seeded, metadata, monkeypatch
    ):
        winner = await pipeline.submit(
            seeded.tenant_id, seeded.game.id, "GOAL_SCORED",
            _goal(seeded.home_team_id), metadata, idempotency_key="race",
        )

        # 模拟两个请求都通过了幂等查询：第一次查询返回 None
        original_find = store_group.event_store.find_by_idempotency_key
        calls = {"n": 0}

        async def racy_find(tenant_id, key):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await original_find(tenant_id, key)

        monkeypatch.setattr(store_group.event_store, "find_by_idempotency_key", racy_find)

        loser = await pipeline.submit(
            seeded.tenant_id, seeded.game.id, "GOAL_SCORED",
            _goal(seeded.home_team_id), metadata, idempotency_key="race",
        )

        assert loser.replayed is True
        assert loser.event.event_id == winner.event.event_id
        game = await store_group.game_store.get_game(seeded.tenant_id, seeded.game.id)
        assert game.home_score == 1

    async def test_same_key_different_tenants(self, pipeline, seeded, other_tenant, metadata):
        a = await pipeline.submit(
            seeded.tenant_id, seeded.game.id, "GAME_STARTED",
            {"start_time": "2026-03-01T19:00:00Z"}, metadata, idempotency_key="k",
        )
        b = await pipeline.submit(
            other_tenant.tenant_id, other_tenant.game.id, "GAME_STARTED",
            {"start_time": "2026-03-01T19:00:00Z"}, metadata, idempotency_key="k",
        )
        assert b.replayed is False
        assert a.event.event_id != b.event.event_id


class TestRejectedBeforeWrite:
    async def test_invalid_payload_writes_nothing(self, pipeline, store_group, seeded, metadata):
        with pytest.raises(EventValidationError) as exc_info:
            await pipeline.submit(
                seeded.tenant_id, seeded.game.id, "GOAL_SCORED", {"team_id": "x"}, metadata
            )
        assert "period" in exc_info.value.details
        assert await store_group.event_store.list_all() == []

    async def test_unknown_event_type(self, pipeline, store_group, seeded, metadata):
        with pytest.raises(UnknownEventTypeError):
            await pipeline.submit(seeded.tenant_id, seeded.game.id, "FIGHT", {}, metadata)
        assert await store_group.event_store.list_all() == []

    async def test_cross_tenant_game_not_found(
        self, pipeline, store_group, seeded, other_tenant, metadata
    ):
        with pytest.raises(NotFoundError):
            await pipeline.submit(
                seeded.tenant_id,
                other_tenant.game.id,
                "GAME_STARTED",
                {"start_time": "2026-03-01T19:00:00Z"},
                metadata,
            )
        assert await store_group.event_store.list_all() == []

    async def test_terminal_game_rejects_new_events(
        self, pipeline, store_group, seeder, seeded, metadata
    ):
        final = await seeder.game(
            seeded.season_id,
            seeded.home_team_id,
            seeded.away_team_id,
            status=GameStatus.FINAL,
            home_score=2,
            away_score=1,
        )

        with pytest.raises(ConflictWithTerminalStateError) as exc_info:
            await pipeline.submit(
                seeded.tenant_id, final.id, "GOAL_SCORED", _goal(seeded.home_team_id), metadata
            )
        assert exc_info.value.status_code == 409
        assert await store_group.event_store.list_all() == []

    async def test_terminal_game_accepts_corrections(
        self, pipeline, store_group, seeder, seeded, metadata
    ):
        final = await seeder.game(
            seeded.season_id,
            seeded.home_team_id,
            seeded.away_team_id,
            status=GameStatus.FINAL,
            home_score=2,
            away_score=1,
        )

        result = await pipeline.submit(
            seeded.tenant_id,
            final.id,
            "SCORE_CORRECTED",
            {"team_id": seeded.home_team_id, "old_score": 2, "new_score": 1, "reason": "review"},
            metadata,
        )

        assert result.projection_applied is True
        game = await store_group.game_store.get_game(seeded.tenant_id, final.id)
        # 更正事件仅审计，不修改投影
        assert (game.home_score, game.away_score) == (2, 1)


class TestProjectionFailure:
    async def test_event_kept_when_projection_fails(
        self, pipeline, store_group, seeded, metadata, sender
    ):
        await _register_viewer(store_group, seeded)
        stranger = "00000000-0000-0000-0000-000000000000"

        with pytest.raises(BadRequestError) as exc_info:
            await pipeline.submit(
                seeded.tenant_id, seeded.game.id, "GOAL_SCORED", _goal(stranger), metadata
            )

        err = exc_info.value
        # 错误类型保持 BadRequest，同时表明事件已落盘
        assert isinstance(err, ProjectionFailedError)
        assert err.code == "BAD_REQUEST"
        assert err.status_code == 400
        events = await store_group.event_store.list_all()
        assert len(events) == 1
        assert err.details == {"event_id": events[0].event_id}
        game = await store_group.game_store.get_game(seeded.tenant_id, seeded.game.id)
        assert game.status == GameStatus.SCHEDULED
        assert (game.home_score, game.away_score) == (0, 0)
        assert sender.messages == []

    async def test_unexpected_projection_error(
        self, pipeline, store_group, seeded, metadata, monkeypatch
    ):
        async def broken_project(tenant_id, event):
            raise RuntimeError("projection db corrupted")

        monkeypatch.setattr(pipeline._projection, "project", broken_project)

        with pytest.raises(ProjectionFailedError) as exc_info:
            await pipeline.submit(
                seeded.tenant_id, seeded.game.id, "GAME_STARTED",
                {"start_time": "2026-03-01T19:00:00Z"}, metadata,
            )

        err = exc_info.value
        assert not isinstance(err, BadRequestError)
        assert err.code == "PROJECTION_FAILED"
        assert err.status_code == 500
        assert err.message == "Projection failed"
        events = await store_group.event_store.list_all()
        assert err.details == {"event_id": events[0].event_id}


class TestFinalization:
    async def test_finalize_recalculates_standings(self, pipeline, store_group, seeded, metadata):
        await pipeline.submit(
            seeded.tenant_id, seeded.game.id, "GAME_STARTED",
            {"start_time": "2026-03-01T19:00:00Z"}, metadata,
        )
        await pipeline.submit(
            seeded.tenant_id, seeded.game.id, "GAME_FINALIZED",
            {"final_home_score": 0, "final_away_score": 2}, metadata,
        )

        standings = await store_group.standings_store.list_standings(seeded.season_id)
        assert standings[0].team_id == seeded.away_team_id
        assert standings[0].points == 3
        assert standings[1].losses == 1

    async def test_standings_failure_does_not_fail_submit(
        self, pipeline, store_group, seeded, metadata, monkeypatch
    ):
        async def broken_trigger(tenant_id, season_id):
            raise RuntimeError("standings db down")

        monkeypatch.setattr(pipeline._standings_trigger, "trigger", broken_trigger)

        result = await pipeline.submit(
            seeded.tenant_id, seeded.game.id, "GAME_FINALIZED",
            {"final_home_score": 1, "final_away_score": 0}, metadata,
        )

        assert result.projection_applied is True
        game = await store_group.game_store.get_game(seeded.tenant_id, seeded.game.id)
        assert game.status == GameStatus.FINAL

    async def test_broadcast_failure_does_not_fail_submit(
        self, pipeline, store_group, seeded, metadata, monkeypatch
    ):
        async def broken_lookup(game_id, tenant_id):
            raise RuntimeError("registry down")

        monkeypatch.setattr(store_group.connection_store, "list_by_game", broken_lookup)

        result = await pipeline.submit(
            seeded.tenant_id, seeded.game.id, "GAME_STARTED",
            {"start_time": "2026-03-01T19:00:00Z"}, metadata,
        )
        assert result.replayed is False


class TestConcurrency:
    async def test_concurrent_goals_all_applied(self, pipeline, store_group, seeded, metadata):
        await asyncio.gather(
            *(
                pipeline.submit(
                    seeded.tenant_id,
                    seeded.game.id,
                    "GOAL_SCORED",
                    _goal(seeded.home_team_id if i % 2 else seeded.away_team_id),
                    EventMetadata(user_id=f"u{i}"),
                )
                for i in range(10)
            )
        )

        game = await store_group.game_store.get_game(seeded.tenant_id, seeded.game.id)
        assert (game.home_score, game.away_score) == (5, 5)
        events = await store_group.event_store.list_by_game(seeded.game.id, seeded.tenant_id)
        assert len(events) == 10


class TestListEvents:
    async def test_list_events_requires_owned_game(self, pipeline, seeded, other_tenant):
        with pytest.raises(NotFoundError):
            await pipeline.list_events(seeded.tenant_id, other_tenant.game.id)

    async def test_list_events_in_order(self, pipeline, seeded, metadata):
        for minute, key in enumerate(("a", "b", "c")):
            await pipeline.submit(
                seeded.tenant_id, seeded.game.id, "PENALTY_ASSESSED",
                {
                    "team_id": seeded.home_team_id,
                    "player_id": PLAYER,
                    "penalty_type": "slashing",
                    "duration_minutes": 2,
                    "period": 1,
                    "time_remaining": "09:00",
                },
                metadata,
                idempotency_key=key,
                occurred_at=T0 + timedelta(minutes=minute),
            )

        events = await pipeline.list_events(seeded.tenant_id, seeded.game.id)
        assert [e.idempotency_key for e in events] == ["a", "b", "c"]
