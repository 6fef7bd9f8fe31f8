"""快照 API 测试"""

from httpx import AsyncClient

PLAYER = "0b6f3a2c-1c1e-4a53-8b7e-6fd2b1f0f3c4"


class TestSnapshotAPI:
    async def test_snapshot_of_new_game(self, client: AsyncClient, seeded, viewer_headers):
        resp = await client.get(f"/v1/games/{seeded.game.id}/snapshot", headers=viewer_headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["game_id"] == seeded.game.id
        assert data["home_team_id"] == seeded.home_team_id
        assert data["away_team_id"] == seeded.away_team_id
        assert data["status"] == "SCHEDULED"
        assert (data["home_score"], data["away_score"]) == (0, 0)
        assert (data["period"], data["clock_seconds"]) == (1, 0)
        assert data["recent_events"] == []
        assert data["snapshot_version"] == "1.0"
        assert data["generated_at"]

    async def test_snapshot_reflects_events(
        self, client: AsyncClient, seeded, writer_headers, viewer_headers
    ):
        url = f"/v1/games/{seeded.game.id}/events"
        await client.post(
            url,
            json={"event_type": "GAME_STARTED", "payload": {"start_time": "2026-03-01T19:00:00Z"}},
            headers=writer_headers,
        )
        await client.post(
            url,
            json={
                "event_type": "GOAL_SCORED",
                "payload": {
                    "team_id": seeded.home_team_id,
                    "player_id": PLAYER,
                    "assist_player_id": PLAYER,
                    "period": 1,
                    "time_remaining": "14:59",
                },
            },
            headers=writer_headers,
        )

        resp = await client.get(f"/v1/games/{seeded.game.id}/snapshot", headers=viewer_headers)

        data = resp.json()
        assert data["status"] == "LIVE"
        assert data["home_score"] == 1
        assert data["clock_seconds"] == 899
        assert [e["event_type"] for e in data["recent_events"]] == ["GOAL_SCORED", "GAME_STARTED"]

    async def test_snapshot_other_tenant(self, client: AsyncClient, other_tenant, viewer_headers):
        resp = await client.get(
            f"/v1/games/{other_tenant.game.id}/snapshot", headers=viewer_headers
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"
