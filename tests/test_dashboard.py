"""Tests for the dashboard router: sync, call history, stats and health."""

from datetime import datetime

from app import crud, models
from conftest import API_KEY_HEADERS, BASE_TS, retell_call, seed_call


class TestSyncEndpoints:
    """Tests for POST /sync-calls and /sync-agents."""

    def test_sync_calls_reports_counts(self, client, retell) -> None:
        retell.calls = [retell_call("c1"), retell_call("c2", agent_id="agent_b")]
        retell.agents = [{"agent_id": "agent_a", "agent_name": "Front Desk"}]

        response = client.post("/api/dashboard/sync-calls", json={"days": 7}, headers=API_KEY_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["callsSynced"] == 2
        assert body["callsUpdated"] == 0
        assert body["errors"] == 0
        start = datetime.fromisoformat(body["dateRange"]["start"])
        end = datetime.fromisoformat(body["dateRange"]["end"])
        assert (end - start).days == 7

    def test_sync_calls_with_nothing_to_sync(self, client, retell) -> None:
        response = client.post("/api/dashboard/sync-calls", json={"days": 7}, headers=API_KEY_HEADERS)

        body = response.json()
        assert body["success"] is True
        assert (body["callsSynced"], body["callsUpdated"], body["errors"]) == (0, 0, 0)

    def test_sync_calls_twice_updates(self, client, retell) -> None:
        retell.calls = [retell_call("c1"), retell_call("c2")]

        client.post("/api/dashboard/sync-calls", headers=API_KEY_HEADERS)
        response = client.post("/api/dashboard/sync-calls", headers=API_KEY_HEADERS)

        body = response.json()
        assert (body["callsSynced"], body["callsUpdated"], body["errors"]) == (0, 2, 0)

    def test_sync_calls_defaults_to_thirty_days(self, client, retell) -> None:
        response = client.post("/api/dashboard/sync-calls", headers=API_KEY_HEADERS)

        assert response.status_code == 200
        assert response.json()["message"] == "No calls found in the specified date range"
        args = retell.fetch_all_args[0]
        assert args["end_ms"] - args["start_ms"] == 30 * 24 * 3600 * 1000

    def test_sync_calls_agent_filter(self, client, retell, db) -> None:
        retell.calls = [retell_call("c1", agent_id="agent_a"), retell_call("c2", agent_id="agent_b")]

        response = client.post(
            "/api/dashboard/sync-calls",
            json={"agentId": "agent_b"},
            headers=API_KEY_HEADERS,
        )

        assert response.json()["callsSynced"] == 1
        assert crud.get_call(db, "c1") is None

    def test_sync_calls_rejects_out_of_range_days(self, client, retell) -> None:
        for days in (0, 91):
            response = client.post("/api/dashboard/sync-calls", json={"days": days}, headers=API_KEY_HEADERS)

            assert response.status_code == 400
            assert response.json()["message"].startswith("days")

    def test_sync_calls_fetch_failure(self, client, retell, db) -> None:
        retell.calls = [retell_call("c1")]
        retell.fail_calls = True

        response = client.post("/api/dashboard/sync-calls", headers=API_KEY_HEADERS)

        assert response.status_code == 500
        assert "call_100" in response.json()["message"]
        assert crud.count_calls(db) == 0

    def test_sync_without_retell_key(self, client) -> None:
        response = client.post("/api/dashboard/sync-calls", headers=API_KEY_HEADERS)

        assert response.status_code == 500
        assert response.json()["message"] == "RETELL_API_KEY is not configured"

    def test_sync_requires_auth(self, client, retell) -> None:
        response = client.post("/api/dashboard/sync-calls")

        assert response.status_code == 401
        assert retell.fetch_all_args == []

    def test_sync_agents(self, client, retell, db) -> None:
        retell.agents = [
            {"agent_id": "agent_a", "agent_name": "Front Desk", "is_published": True},
            {"agent_id": "agent_b", "agent_name": "Night Line"},
        ]

        response = client.post("/api/dashboard/sync-agents", headers=API_KEY_HEADERS)

        body = response.json()
        assert (body["agentsSynced"], body["agentsUpdated"], body["errors"]) == (2, 0, 0)
        assert crud.get_agent(db, "agent_b").status == models.AgentStatus.INACTIVE.value


class TestCallHistory:
    """Tests for the call history endpoints."""

    def test_last_page(self, client, db) -> None:
        for i in range(25):
            seed_call(db, f"c{i:02d}", start=BASE_TS + i * 1000)

        response = client.get(
            "/api/dashboard/call-history/agent_a",
            params={"limit": 10, "offset": 20},
            headers=API_KEY_HEADERS,
        )

        data = response.json()["data"]
        assert [call["call_id"] for call in data["calls"]] == ["c04", "c03", "c02", "c01", "c00"]
        assert data["pagination"] == {"total": 25, "limit": 10, "offset": 20, "hasMore": False}

    def test_has_more(self, client, db) -> None:
        for i in range(3):
            seed_call(db, f"c{i}", start=BASE_TS + i)

        response = client.get("/api/dashboard/call-history", params={"limit": 2}, headers=API_KEY_HEADERS)

        assert response.json()["data"]["pagination"]["hasMore"] is True

    def test_call_shape(self, client, db) -> None:
        seed_call(db, "c1", start=BASE_TS, duration_ms=61500, cost=3.5)

        response = client.get("/api/dashboard/call-history", headers=API_KEY_HEADERS)

        call = response.json()["data"]["calls"][0]
        assert call["start_timestamp"] == BASE_TS
        assert call["end_timestamp"] == BASE_TS + 61500
        assert call["duration_ms"] == 61500
        assert call["duration_seconds"] == 61
        assert call["cost"] == 3.5
        assert call["agent"] == {"agent_id": "agent_a", "agent_name": "Agent agent_a", "status": "ACTIVE"}

    def test_known_agent_without_calls(self, client, db) -> None:
        crud.create_agent(db, "agent_a", "Front Desk")

        response = client.get(
            "/api/dashboard/call-history/agent_a",
            params={"limit": 1, "offset": 0, "sortBy": "cost"},
            headers=API_KEY_HEADERS,
        )

        assert response.json()["data"] == {
            "calls": [],
            "pagination": {"total": 0, "limit": 1, "offset": 0, "hasMore": False},
        }

    def test_other_agents_are_excluded(self, client, db) -> None:
        seed_call(db, "c1", "agent_a")
        seed_call(db, "c2", "agent_b")

        response = client.get("/api/dashboard/call-history/agent_b", headers=API_KEY_HEADERS)

        assert [call["call_id"] for call in response.json()["data"]["calls"]] == ["c2"]

    def test_unknown_agent(self, client) -> None:
        response = client.get("/api/dashboard/call-history/ghost", headers=API_KEY_HEADERS)

        assert response.status_code == 404
        assert response.json()["message"] == "Agent with ID ghost not found"

    def test_sort_by_cost(self, client, db) -> None:
        seed_call(db, "cheap", cost=1.0)
        seed_call(db, "pricey", cost=9.0)

        response = client.get("/api/dashboard/call-history", params={"sortBy": "cost"}, headers=API_KEY_HEADERS)

        assert [call["call_id"] for call in response.json()["data"]["calls"]] == ["pricey", "cheap"]

    def test_invalid_query_params(self, client) -> None:
        for params in ({"limit": 0}, {"limit": 101}, {"offset": -1}, {"sortBy": "name"}):
            response = client.get("/api/dashboard/call-history", params=params, headers=API_KEY_HEADERS)

            assert response.status_code == 400, params
            assert response.json()["error"] is True


class TestInfoAndStatus:
    """Tests for agent info, stats and sync status."""

    def test_agent_info(self, client, db) -> None:
        crud.create_agent(db, "agent_a", "Front Desk")

        response = client.get("/api/dashboard/agent-info/agent_a", headers=API_KEY_HEADERS)

        assert response.json()["data"]["agent_name"] == "Front Desk"

    def test_agent_info_unknown(self, client) -> None:
        response = client.get("/api/dashboard/agent-info/ghost", headers=API_KEY_HEADERS)

        assert response.status_code == 404

    def test_stats(self, client, db) -> None:
        seed_call(db, "c1", "agent_a", cost=2.0)
        seed_call(db, "c2", "agent_a", cost=3.0)
        crud.create_agent(db, "agent_b", "Idle", models.AgentStatus.INACTIVE.value)

        response = client.get("/api/dashboard/stats", headers=API_KEY_HEADERS)

        data = response.json()["data"]
        assert data["agents"] == {"total": 2, "active": 1, "inactive": 1}
        assert data["calls"] == {"total": 2}
        assert data["cost"] == {"total": 5.0}

    def test_sync_status(self, client, db) -> None:
        empty = client.get("/api/dashboard/sync-status", headers=API_KEY_HEADERS).json()["data"]
        seed_call(db, "c1")
        synced = client.get("/api/dashboard/sync-status", headers=API_KEY_HEADERS).json()["data"]

        assert empty == {"calls": {"lastSynced": None}, "agents": {"lastSynced": None}}
        assert synced["calls"]["lastSynced"] is not None
        assert synced["agents"]["lastSynced"] is not None


class TestHealth:
    """Tests for the unauthenticated health endpoints."""

    def test_health(self, client) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_database_health(self, client) -> None:
        assert client.get("/health/db").json() == {"status": "healthy", "database": "connected"}

    def test_api_health_without_key(self, client) -> None:
        assert client.get("/health/api").json()["status"] == "unknown"

    def test_unknown_route_uses_error_envelope(self, client) -> None:
        response = client.get("/api/nowhere")

        assert response.status_code == 404
        assert response.json()["error"] is True
