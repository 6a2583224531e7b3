"""Tests for the FastAPI routes."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from photon_gun.api.server import create_app
from photon_gun.config import Settings


def _create(client, **body) -> dict:
    body.setdefault("endpoint", "https://example.com/health")
    body.setdefault("interval", 5)
    resp = client.post("/api/healthchecks", json=body)
    assert resp.status_code == 200, resp.text
    return resp.json()


def _result(client, check_id: int, start_time: float = 1_700_000_000.0, passed: bool = True, **kw):
    body = {"start_time": start_time, "elapsed_time": kw.get("elapsed_time", 10), "pass": passed}
    if "message" in kw:
        body["message"] = kw["message"]
    return client.post(f"/api/healthchecks/{check_id}/results", json=body)


class TestPing:
    def test_ping(self, client) -> None:
        resp = client.get("/api/ping")
        assert resp.status_code == 200
        assert resp.json() == {"message": "pong"}


class TestHealthcheckRoutes:
    def test_create_and_get(self, client) -> None:
        created = _create(client, name="example")
        assert created["enabled"] is True
        assert created["name"] == "example"

        resp = client.get(f"/api/healthchecks/{created['id']}")
        assert resp.status_code == 200
        assert resp.json() == created

    def test_create_invalid(self, client) -> None:
        resp = client.post("/api/healthchecks", json={"endpoint": "https://a.test", "interval": 0})
        assert resp.status_code == 400
        assert "interval" in resp.json()["detail"]

        resp = client.post("/api/healthchecks", json={"endpoint": "", "interval": 5})
        assert resp.status_code == 400

        assert client.get("/api/healthchecks").json() == {"healthchecks": []}

    @pytest.mark.parametrize("interval", [1.5, "abc", "5", True])
    def test_create_rejects_non_integer_interval(self, client, interval) -> None:
        resp = client.post("/api/healthchecks", json={"endpoint": "https://a.test", "interval": interval})
        assert resp.status_code == 400
        assert "interval" in resp.json()["detail"]
        assert client.get("/api/healthchecks").json() == {"healthchecks": []}

    def test_create_malformed_body(self, client) -> None:
        resp = client.post("/api/healthchecks", json={"interval": 5})
        assert resp.status_code == 400
        assert "endpoint" in resp.json()["detail"]

        resp = client.post(
            "/api/healthchecks", content="not json", headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400

    def test_get_unknown(self, client) -> None:
        resp = client.get("/api/healthchecks/999")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "healthcheck 999 not found"

    def test_list_filters(self, client) -> None:
        on = _create(client, endpoint="https://on.test")
        off = _create(client, endpoint="https://off.test", enabled=False)

        all_ids = [c["id"] for c in client.get("/api/healthchecks").json()["healthchecks"]]
        enabled = client.get("/api/healthchecks", params={"enabled": "true"}).json()["healthchecks"]
        disabled = client.get("/api/healthchecks", params={"enabled": "false"}).json()["healthchecks"]

        assert all_ids == [on["id"], off["id"]]
        assert [c["id"] for c in enabled] == [on["id"]]
        assert [c["id"] for c in disabled] == [off["id"]]

    def test_list_limit(self, client) -> None:
        for i in range(12):
            _create(client, endpoint=f"https://h{i}.test")
        assert len(client.get("/api/healthchecks").json()["healthchecks"]) == 10
        assert len(client.get("/api/healthchecks", params={"limit": 12}).json()["healthchecks"]) == 12
        assert client.get("/api/healthchecks", params={"limit": 0}).status_code == 400

    def test_list_after_id(self, client) -> None:
        ids = [_create(client, endpoint=f"https://h{i}.test")["id"] for i in range(4)]
        page = client.get("/api/healthchecks", params={"after_id": ids[1]}).json()["healthchecks"]
        assert [c["id"] for c in page] == ids[2:]

        last = client.get("/api/healthchecks", params={"after_id": ids[-1]}).json()
        assert last == {"healthchecks": []}
        assert client.get("/api/healthchecks", params={"after_id": "x"}).status_code == 400

    def test_update_partial(self, client) -> None:
        created = _create(client, name="a")
        resp = client.patch(f"/api/healthchecks/{created['id']}", json={"interval": 60})
        assert resp.status_code == 200
        assert resp.json() == {**created, "interval": 60}

    def test_update_invalid_and_unknown(self, client) -> None:
        created = _create(client)
        bad = client.patch(f"/api/healthchecks/{created['id']}", json={"endpoint": "nope"})
        assert bad.status_code == 400
        missing = client.patch("/api/healthchecks/999", json={"interval": 60})
        assert missing.status_code == 404

    @pytest.mark.parametrize("interval", [True, 2.5, "60"])
    def test_update_rejects_non_integer_interval(self, client, interval) -> None:
        created = _create(client)
        resp = client.patch(f"/api/healthchecks/{created['id']}", json={"interval": interval})
        assert resp.status_code == 400
        assert client.get(f"/api/healthchecks/{created['id']}").json() == created

    def test_disable_returns_empty(self, client) -> None:
        created = _create(client)
        resp = client.post(f"/api/healthchecks/{created['id']}/disable")
        assert resp.status_code == 200
        assert resp.json() == {}
        assert client.get(f"/api/healthchecks/{created['id']}").json()["enabled"] is False

    def test_enable_returns_check(self, client) -> None:
        created = _create(client, enabled=False)
        resp = client.post(f"/api/healthchecks/{created['id']}/enable")
        assert resp.status_code == 200
        assert resp.json() == {**created, "enabled": True}

    def test_enable_disable_unknown(self, client) -> None:
        assert client.post("/api/healthchecks/42/enable").status_code == 404
        assert client.post("/api/healthchecks/42/disable").status_code == 404

    def test_delete(self, client) -> None:
        created = _create(client)
        resp = client.delete(f"/api/healthchecks/{created['id']}")
        assert resp.status_code == 200
        assert resp.json() == created
        assert client.get(f"/api/healthchecks/{created['id']}").status_code == 404
        assert client.delete(f"/api/healthchecks/{created['id']}").status_code == 404


class TestResultRoutes:
    def test_submit_and_list(self, client) -> None:
        created = _create(client)
        first = _result(client, created["id"], 1_700_000_000.0, True)
        second = _result(client, created["id"], 1_700_000_005.0, False, message="500 Internal Server Error")
        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["pass"] is False
        assert "passed" not in second.json()

        resp = client.get(f"/api/healthchecks/{created['id']}/results")
        assert resp.status_code == 200
        results = resp.json()["healthcheck_results"]
        assert [r["id"] for r in results] == [second.json()["id"], first.json()["id"]]
        assert results[0]["message"] == "500 Internal Server Error"
        assert results[1]["pass"] is True

    def test_results_empty(self, client) -> None:
        created = _create(client)
        resp = client.get(f"/api/healthchecks/{created['id']}/results")
        assert resp.json() == {"healthcheck_results": []}

    def test_results_unknown(self, client) -> None:
        assert client.get("/api/healthchecks/77/results").status_code == 404
        assert _result(client, 77).status_code == 404

    def test_results_limit(self, client) -> None:
        created = _create(client)
        for i in range(4):
            _result(client, created["id"], 1_700_000_000.0 + i)
        resp = client.get(f"/api/healthchecks/{created['id']}/results", params={"limit": 2})
        assert len(resp.json()["healthcheck_results"]) == 2
        bad = client.get(f"/api/healthchecks/{created['id']}/results", params={"limit": -3})
        assert bad.status_code == 400

    def test_results_survive_delete(self, client) -> None:
        created = _create(client)
        _result(client, created["id"])
        client.delete(f"/api/healthchecks/{created['id']}")

        late = _result(client, created["id"], 1_700_000_010.0)
        assert late.status_code == 200

        resp = client.get(f"/api/healthchecks/{created['id']}/results")
        assert len(resp.json()["healthcheck_results"]) == 2

    def test_submit_invalid(self, client) -> None:
        created = _create(client)
        assert _result(client, created["id"], elapsed_time=-5).status_code == 400

    def test_summary(self, client) -> None:
        created = _create(client)
        _result(client, created["id"], 1_700_000_000.0, True)
        _result(client, created["id"], 1_700_000_010.0, False)

        resp = client.get(f"/api/healthchecks/{created['id']}/summary", params={"resolution": "minute"})
        assert resp.status_code == 200
        assert resp.json() == {
            "check_id": created["id"],
            "resolution": "minute",
            "summary": [{"time_window": "2023-11-14T22:13:00", "pass": 1, "fail": 1}],
        }

    def test_summary_errors(self, client) -> None:
        created = _create(client)
        bad = client.get(f"/api/healthchecks/{created['id']}/summary", params={"resolution": "week"})
        assert bad.status_code == 400
        assert client.get("/api/healthchecks/99/summary").status_code == 404


class TestLifespan:
    def test_store_opened_on_startup(self, tmp_path) -> None:
        conf = Settings(database_path=str(tmp_path / "lifespan.db"))
        app = create_app(conf=conf)
        with TestClient(app) as client:
            created = _create(client)
            assert client.get(f"/api/healthchecks/{created['id']}").status_code == 200
        assert (tmp_path / "lifespan.db").exists()
