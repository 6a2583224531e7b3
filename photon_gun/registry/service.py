"""Registry service — validated operations over the configuration store.

Every RPC handler goes through here. Validation failures raise
InvalidArgumentError and unknown ids raise NotFoundError; both surface to the
caller verbatim and are never retried. The service never schedules anything.
"""

from __future__ import annotations

import logging

import httpx

from photon_gun.models import (
    Healthcheck,
    HealthcheckResult,
    HealthcheckSummary,
    ResultSubmission,
)
from photon_gun.registry.store import RESOLUTIONS, HealthcheckStore

logger = logging.getLogger(__name__)

SUMMARY_WINDOWS = 60


class RegistryServiceError(Exception):
    """Base class for errors surfaced to registry callers."""


class NotFoundError(RegistryServiceError):
    """Raised when a healthcheck id is unknown."""

    def __init__(self, check_id: int) -> None:
        self.check_id = check_id
        super().__init__(f"healthcheck {check_id} not found")


class InvalidArgumentError(RegistryServiceError):
    """Raised when a request is structurally invalid."""


def validate_endpoint(endpoint: object) -> str:
    if not isinstance(endpoint, str) or not endpoint.strip():
        raise InvalidArgumentError("endpoint must be a non-empty URL")
    endpoint = endpoint.strip()
    try:
        url = httpx.URL(endpoint)
    except httpx.InvalidURL as e:
        raise InvalidArgumentError(f"endpoint is not a valid URL: {e}") from e
    if url.scheme not in ("http", "https"):
        raise InvalidArgumentError(f"endpoint must use http or https, got {endpoint!r}")
    if not url.host:
        raise InvalidArgumentError(f"endpoint has no host: {endpoint!r}")
    return endpoint


def validate_interval(interval: object) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0:
        raise InvalidArgumentError(f"interval must be a positive integer, got {interval!r}")
    return interval


class RegistryService:
    """The RPC-facing façade over a HealthcheckStore."""

    def __init__(
        self,
        store: HealthcheckStore,
        default_limit: int = 10,
        max_limit: int = 1000,
    ) -> None:
        self.store = store
        self.default_limit = default_limit
        self.max_limit = max_limit

    def _limit(self, limit: int | None) -> int:
        if limit is None:
            return self.default_limit
        if limit <= 0:
            raise InvalidArgumentError(f"limit must be positive, got {limit}")
        return min(limit, self.max_limit)

    # ── Queries ───────────────────────────────────────────────────────────

    def get(self, check_id: int) -> Healthcheck:
        check = self.store.get(check_id)
        if check is None:
            raise NotFoundError(check_id)
        return check

    def list(
        self,
        enabled: bool | None = None,
        limit: int | None = None,
        after_id: int | None = None,
    ) -> list[Healthcheck]:
        """One page of live checks; pass the last id seen as ``after_id`` for the next."""
        return self.store.list_all(enabled=enabled, limit=self._limit(limit), after_id=after_id)

    def list_results(self, check_id: int, limit: int | None = None) -> list[HealthcheckResult]:
        """Results for a check, most recent first.

        Deleted checks keep their history, so only ids that were never
        allocated are NotFound. An empty list means "no results yet".
        """
        limit = self._limit(limit)
        if not self.store.is_known(check_id):
            raise NotFoundError(check_id)
        return self.store.list_results(check_id, limit)

    def summarize(self, check_id: int, resolution: str = "minute") -> HealthcheckSummary:
        if resolution not in RESOLUTIONS:
            raise InvalidArgumentError(
                f"resolution must be one of {', '.join(RESOLUTIONS)}, got {resolution!r}"
            )
        if not self.store.is_known(check_id):
            raise NotFoundError(check_id)
        windows = self.store.summarize(check_id, resolution, SUMMARY_WINDOWS)
        return HealthcheckSummary(check_id=check_id, resolution=resolution, summary=windows)

    # ── Mutations ─────────────────────────────────────────────────────────

    def create(
        self,
        endpoint: str,
        interval: int,
        name: str | None = None,
        enabled: bool = True,
    ) -> Healthcheck:
        endpoint = validate_endpoint(endpoint)
        interval = validate_interval(interval)
        check = self.store.create(endpoint=endpoint, interval=interval, name=name, enabled=enabled)
        logger.info("Created healthcheck %d (%s every %ds)", check.id, check.endpoint, check.interval)
        return check

    def update(
        self,
        check_id: int,
        name: str | None = None,
        endpoint: str | None = None,
        interval: int | None = None,
    ) -> Healthcheck:
        """Partial update of the supplied fields; `enabled` is not touched."""
        fields: dict[str, object] = {}
        if name is not None:
            fields["name"] = name
        if endpoint is not None:
            fields["endpoint"] = validate_endpoint(endpoint)
        if interval is not None:
            fields["interval"] = validate_interval(interval)

        check = self.store.update(check_id, **fields)
        if check is None:
            raise NotFoundError(check_id)
        if fields:
            logger.info("Updated healthcheck %d: %s", check_id, ", ".join(fields))
        return check

    def enable(self, check_id: int) -> Healthcheck:
        check = self.store.set_enabled(check_id, True)
        if check is None:
            raise NotFoundError(check_id)
        logger.info("Enabled healthcheck %d", check_id)
        return check

    def disable(self, check_id: int) -> None:
        if self.store.set_enabled(check_id, False) is None:
            raise NotFoundError(check_id)
        logger.info("Disabled healthcheck %d", check_id)

    def delete(self, check_id: int) -> Healthcheck:
        check = self.store.delete(check_id)
        if check is None:
            raise NotFoundError(check_id)
        logger.info("Deleted healthcheck %d", check_id)
        return check

    def submit_result(self, check_id: int, result: ResultSubmission) -> HealthcheckResult:
        """Record a probe outcome delivered by an agent.

        Accepted for deleted checks too: a probe in flight when its check was
        deleted still gets recorded.
        """
        if result.elapsed_time < 0:
            raise InvalidArgumentError(f"elapsed_time must be >= 0, got {result.elapsed_time}")
        if result.start_time <= 0:
            raise InvalidArgumentError(f"start_time must be an epoch timestamp, got {result.start_time}")
        if not self.store.is_known(check_id):
            raise NotFoundError(check_id)
        return self.store.add_result(
            check_id,
            start_time=result.start_time,
            elapsed_time=result.elapsed_time,
            passed=result.passed,
            message=result.message,
        )
