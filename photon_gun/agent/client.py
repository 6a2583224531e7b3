"""Async httpx client for the registry API.

All methods return typed responses or raise RegistryUnavailableError /
RegistryError.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from photon_gun.models import (
    Healthcheck,
    HealthcheckList,
    HealthcheckResult,
    HealthcheckResultList,
    HealthcheckSummary,
    ResultSubmission,
)

logger = logging.getLogger(__name__)


class RegistryUnavailableError(Exception):
    """Raised when the registry is unreachable or does not answer in time."""


class RegistryError(Exception):
    """Raised when the registry answers with an error status."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Registry error {status_code}: {detail}")

    @property
    def is_retryable(self) -> bool:
        # 4xx means the request itself is wrong; sending it again won't help
        return self.status_code >= 500


class RegistryClient:
    """Async httpx client for the photon-gun registry."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/api",
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> RegistryClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Perform a request against the registry."""
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            resp = await self._client.request(method, path, params=params, json=json_data)
        except httpx.TimeoutException as e:
            raise RegistryUnavailableError(f"Registry request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            raise RegistryUnavailableError(f"Registry is unreachable: {type(e).__name__}: {e}") from e

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = None
            detail = body.get("detail", resp.text) if isinstance(body, dict) else resp.text
            raise RegistryError(resp.status_code, str(detail))
        return resp

    # ── High-level methods ───────────────────────────────────────────────

    async def ping(self) -> None:
        """GET /ping"""
        await self._request("GET", "/ping")

    async def get_healthcheck(self, check_id: int) -> Healthcheck:
        """GET /healthchecks/{id}"""
        resp = await self._request("GET", f"/healthchecks/{check_id}")
        return Healthcheck.model_validate(resp.json())

    async def list_healthchecks(
        self,
        enabled: bool | None = None,
        limit: int | None = None,
        after_id: int | None = None,
    ) -> list[Healthcheck]:
        """GET /healthchecks?enabled=&limit=&after_id="""
        params = {
            "enabled": None if enabled is None else str(enabled).lower(),
            "limit": limit,
            "after_id": after_id,
        }
        resp = await self._request("GET", "/healthchecks", params=params)
        return HealthcheckList.model_validate(resp.json()).healthchecks

    async def list_healthcheck_results(
        self, check_id: int, limit: int | None = None,
    ) -> list[HealthcheckResult]:
        """GET /healthchecks/{id}/results?limit="""
        resp = await self._request(
            "GET", f"/healthchecks/{check_id}/results", params={"limit": limit},
        )
        return HealthcheckResultList.model_validate(resp.json()).healthcheck_results

    async def summarize_healthcheck_results(
        self, check_id: int, resolution: str = "minute",
    ) -> HealthcheckSummary:
        """GET /healthchecks/{id}/summary?resolution="""
        resp = await self._request(
            "GET", f"/healthchecks/{check_id}/summary", params={"resolution": resolution},
        )
        return HealthcheckSummary.model_validate(resp.json())

    async def create_healthcheck(
        self,
        endpoint: str,
        interval: int,
        name: str | None = None,
        enabled: bool = True,
    ) -> Healthcheck:
        """POST /healthchecks"""
        body = {"name": name, "endpoint": endpoint, "interval": interval, "enabled": enabled}
        resp = await self._request("POST", "/healthchecks", json_data=body)
        return Healthcheck.model_validate(resp.json())

    async def update_healthcheck(
        self,
        check_id: int,
        name: str | None = None,
        endpoint: str | None = None,
        interval: int | None = None,
    ) -> Healthcheck:
        """PATCH /healthchecks/{id}, only the supplied fields."""
        body = {
            k: v
            for k, v in {"name": name, "endpoint": endpoint, "interval": interval}.items()
            if v is not None
        }
        resp = await self._request("PATCH", f"/healthchecks/{check_id}", json_data=body)
        return Healthcheck.model_validate(resp.json())

    async def delete_healthcheck(self, check_id: int) -> Healthcheck:
        """DELETE /healthchecks/{id}, returning the last known value."""
        resp = await self._request("DELETE", f"/healthchecks/{check_id}")
        return Healthcheck.model_validate(resp.json())

    async def enable_healthcheck(self, check_id: int) -> Healthcheck:
        """POST /healthchecks/{id}/enable"""
        resp = await self._request("POST", f"/healthchecks/{check_id}/enable")
        return Healthcheck.model_validate(resp.json())

    async def disable_healthcheck(self, check_id: int) -> None:
        """POST /healthchecks/{id}/disable, acknowledged with an empty body."""
        await self._request("POST", f"/healthchecks/{check_id}/disable")

    async def submit_result(self, check_id: int, result: ResultSubmission) -> HealthcheckResult:
        """POST /healthchecks/{id}/results"""
        resp = await self._request(
            "POST",
            f"/healthchecks/{check_id}/results",
            json_data=result.model_dump(by_alias=True),
        )
        return HealthcheckResult.model_validate(resp.json())
