"""Tests for the async registry client."""

from __future__ import annotations

import json

import httpx
import pytest

from photon_gun.agent.client import RegistryClient, RegistryError, RegistryUnavailableError
from photon_gun.api.server import create_app
from photon_gun.models import ResultSubmission

CHECK = {"id": 1, "name": "google", "endpoint": "https://google.com", "interval": 5, "enabled": True}


def _mock_client(handler) -> RegistryClient:
    return RegistryClient("http://registry.test/", transport=httpx.MockTransport(handler))


# ── Request shaping / error mapping ──────────────────────────────────────────


class TestRegistryClient:
    def test_base_url_stripped(self) -> None:
        client = RegistryClient("http://registry.test:8000/")
        assert client.base_url == "http://registry.test:8000"

    @pytest.mark.asyncio
    async def test_list_sends_filters(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"healthchecks": [CHECK]})

        async with _mock_client(handler) as client:
            checks = await client.list_healthchecks(enabled=True, limit=1000)

        assert [c.id for c in checks] == [1]
        assert seen[0].url.path == "/api/healthchecks"
        assert seen[0].url.params["enabled"] == "true"
        assert seen[0].url.params["limit"] == "1000"

    @pytest.mark.asyncio
    async def test_list_omits_unset_params(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"healthchecks": []})

        async with _mock_client(handler) as client:
            assert await client.list_healthchecks() == []

        assert "enabled" not in seen[0].url.params
        assert "limit" not in seen[0].url.params
        assert "after_id" not in seen[0].url.params

    @pytest.mark.asyncio
    async def test_list_sends_after_id(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"healthchecks": []})

        async with _mock_client(handler) as client:
            await client.list_healthchecks(enabled=True, limit=50, after_id=1000)

        assert seen[0].url.params["after_id"] == "1000"

    @pytest.mark.asyncio
    async def test_update_sends_only_supplied_fields(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={**CHECK, "interval": 30})

        async with _mock_client(handler) as client:
            updated = await client.update_healthcheck(1, interval=30)

        assert bodies == [{"interval": 30}]
        assert updated.interval == 30

    @pytest.mark.asyncio
    async def test_submit_uses_pass_alias(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            bodies.append(body)
            return httpx.Response(200, json={"id": 9, "check_id": 1, **body})

        submission = ResultSubmission(start_time=1_700_000_000.0, elapsed_time=42, passed=False, message="boom")
        async with _mock_client(handler) as client:
            stored = await client.submit_result(1, submission)

        assert bodies[0]["pass"] is False
        assert "passed" not in bodies[0]
        assert stored.id == 9
        assert stored.passed is False

    @pytest.mark.asyncio
    async def test_not_found_is_not_retryable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"detail": "healthcheck 3 not found"})

        async with _mock_client(handler) as client:
            with pytest.raises(RegistryError) as exc_info:
                await client.get_healthcheck(3)

        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "healthcheck 3 not found"
        assert not exc_info.value.is_retryable

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="upstream unavailable")

        async with _mock_client(handler) as client:
            with pytest.raises(RegistryError) as exc_info:
                await client.ping()

        assert exc_info.value.is_retryable
        assert exc_info.value.detail == "upstream unavailable"

    @pytest.mark.asyncio
    async def test_connect_error_is_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _mock_client(handler) as client:
            with pytest.raises(RegistryUnavailableError, match="unreachable"):
                await client.ping()

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with _mock_client(handler) as client:
            with pytest.raises(RegistryUnavailableError, match="timed out"):
                await client.list_healthchecks()


# ── Against the real app ─────────────────────────────────────────────────────


class TestAgainstRegistry:
    @pytest.mark.asyncio
    async def test_full_lifecycle(self, service) -> None:
        transport = httpx.ASGITransport(app=create_app(service=service))
        async with RegistryClient("http://registry", transport=transport) as client:
            await client.ping()

            created = await client.create_healthcheck("https://a.test", 5, name="a")
            assert await client.get_healthcheck(created.id) == created

            await client.disable_healthcheck(created.id)
            assert await client.list_healthchecks(enabled=True) == []
            assert (await client.enable_healthcheck(created.id)).enabled is True

            stored = await client.submit_result(
                created.id,
                ResultSubmission(start_time=1_700_000_000.0, elapsed_time=20, passed=True),
            )
            assert await client.list_healthcheck_results(created.id) == [stored]

            summary = await client.summarize_healthcheck_results(created.id, "day")
            assert summary.summary[0].passed == 1

            assert await client.delete_healthcheck(created.id) == created
            with pytest.raises(RegistryError) as exc_info:
                await client.get_healthcheck(created.id)
            assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_argument_surfaces_as_400(self, service) -> None:
        transport = httpx.ASGITransport(app=create_app(service=service))
        async with RegistryClient("http://registry", transport=transport) as client:
            with pytest.raises(RegistryError) as exc_info:
                await client.create_healthcheck("https://a.test", 0)
        assert exc_info.value.status_code == 400
        assert "interval" in exc_info.value.detail
