"""Registry API routes — the RPC surface over HTTP/JSON.

Endpoints:
  GET    /api/ping                              liveness for agents / CLI
  GET    /api/healthchecks                      ListHealthchecks(enabled?, limit?)
  POST   /api/healthchecks                      CreateHealthcheck
  GET    /api/healthchecks/{id}                 GetHealthcheck
  PATCH  /api/healthchecks/{id}                 UpdateHealthcheck
  DELETE /api/healthchecks/{id}                 DeleteHealthcheck (returns last value)
  POST   /api/healthchecks/{id}/enable          EnableHealthcheck
  POST   /api/healthchecks/{id}/disable         DisableHealthcheck (returns {})
  GET    /api/healthchecks/{id}/results         ListHealthcheckResults(limit?)
  POST   /api/healthchecks/{id}/results         submit a probe result (agent)
  GET    /api/healthchecks/{id}/summary         pass/fail per time window
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from photon_gun.models import (
    Empty,
    Healthcheck,
    HealthcheckCreate,
    HealthcheckList,
    HealthcheckResult,
    HealthcheckResultList,
    HealthcheckSummary,
    HealthcheckUpdate,
    Pong,
    ResultSubmission,
)
from photon_gun.registry.service import InvalidArgumentError, NotFoundError, RegistryService

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────────────────────


def _get_service(request: Request) -> RegistryService:
    return request.app.state.registry  # type: ignore[no-any-return]


def _http_error(err: Exception) -> HTTPException:
    if isinstance(err, NotFoundError):
        return HTTPException(status_code=404, detail=str(err))
    return HTTPException(status_code=400, detail=str(err))


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("/ping", response_model=Pong)
def ping() -> Pong:
    return Pong()


@router.get("/healthchecks", response_model=HealthcheckList)
def list_healthchecks(
    request: Request,
    enabled: bool | None = None,
    limit: int | None = None,
    after_id: int | None = None,
) -> HealthcheckList:
    try:
        checks = _get_service(request).list(enabled=enabled, limit=limit, after_id=after_id)
    except InvalidArgumentError as e:
        raise _http_error(e)
    return HealthcheckList(healthchecks=checks)


@router.post("/healthchecks", response_model=Healthcheck)
def create_healthcheck(body: HealthcheckCreate, request: Request) -> Healthcheck:
    try:
        return _get_service(request).create(
            endpoint=body.endpoint,
            interval=body.interval,
            name=body.name,
            enabled=body.enabled,
        )
    except InvalidArgumentError as e:
        raise _http_error(e)


@router.get("/healthchecks/{check_id}", response_model=Healthcheck)
def get_healthcheck(check_id: int, request: Request) -> Healthcheck:
    try:
        return _get_service(request).get(check_id)
    except NotFoundError as e:
        raise _http_error(e)


@router.patch("/healthchecks/{check_id}", response_model=Healthcheck)
def update_healthcheck(check_id: int, body: HealthcheckUpdate, request: Request) -> Healthcheck:
    try:
        return _get_service(request).update(
            check_id,
            name=body.name,
            endpoint=body.endpoint,
            interval=body.interval,
        )
    except (NotFoundError, InvalidArgumentError) as e:
        raise _http_error(e)


@router.delete("/healthchecks/{check_id}", response_model=Healthcheck)
def delete_healthcheck(check_id: int, request: Request) -> Healthcheck:
    try:
        return _get_service(request).delete(check_id)
    except NotFoundError as e:
        raise _http_error(e)


@router.post("/healthchecks/{check_id}/enable", response_model=Healthcheck)
def enable_healthcheck(check_id: int, request: Request) -> Healthcheck:
    try:
        return _get_service(request).enable(check_id)
    except NotFoundError as e:
        raise _http_error(e)


@router.post("/healthchecks/{check_id}/disable", response_model=Empty)
def disable_healthcheck(check_id: int, request: Request) -> Empty:
    try:
        _get_service(request).disable(check_id)
    except NotFoundError as e:
        raise _http_error(e)
    return Empty()


@router.get("/healthchecks/{check_id}/results", response_model=HealthcheckResultList)
def list_healthcheck_results(
    check_id: int, request: Request, limit: int | None = None,
) -> HealthcheckResultList:
    try:
        results = _get_service(request).list_results(check_id, limit=limit)
    except (NotFoundError, InvalidArgumentError) as e:
        raise _http_error(e)
    return HealthcheckResultList(healthcheck_results=results)


@router.post("/healthchecks/{check_id}/results", response_model=HealthcheckResult)
def submit_healthcheck_result(
    check_id: int, body: ResultSubmission, request: Request,
) -> HealthcheckResult:
    try:
        return _get_service(request).submit_result(check_id, body)
    except (NotFoundError, InvalidArgumentError) as e:
        raise _http_error(e)


@router.get("/healthchecks/{check_id}/summary", response_model=HealthcheckSummary)
def summarize_healthcheck_results(
    check_id: int, request: Request, resolution: str = "minute",
) -> HealthcheckSummary:
    try:
        return _get_service(request).summarize(check_id, resolution)
    except (NotFoundError, InvalidArgumentError) as e:
        raise _http_error(e)
