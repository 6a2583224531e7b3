"""Pydantic models for the registry API — shared by server, agent and CLI."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictInt

# ── Records ──────────────────────────────────────────────────────────────────


class Healthcheck(BaseModel):
    id: int
    name: str | None = None
    endpoint: str
    interval: int
    enabled: bool = True


class HealthcheckResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    check_id: int
    start_time: float  # epoch seconds
    elapsed_time: int  # milliseconds
    passed: bool = Field(alias="pass")
    message: str | None = None


class HealthcheckList(BaseModel):
    healthchecks: list[Healthcheck]


class HealthcheckResultList(BaseModel):
    healthcheck_results: list[HealthcheckResult]


class SummaryWindow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    time_window: str
    passed: int = Field(alias="pass")
    failed: int = Field(alias="fail")


class HealthcheckSummary(BaseModel):
    check_id: int
    resolution: str
    summary: list[SummaryWindow]


class Empty(BaseModel):
    pass


class Pong(BaseModel):
    message: str = "pong"


# ── Requests ─────────────────────────────────────────────────────────────────


class HealthcheckCreate(BaseModel):
    name: str | None = None
    endpoint: str
    interval: StrictInt  # rejects 1.5, "5" and true
    enabled: bool = True


class HealthcheckUpdate(BaseModel):
    name: str | None = None
    endpoint: str | None = None
    interval: StrictInt | None = None


class ResultSubmission(BaseModel):
    """A finished probe on its way to the store; the store assigns the id."""

    model_config = ConfigDict(populate_by_name=True)

    start_time: float
    elapsed_time: int
    passed: bool = Field(alias="pass")
    message: str | None = None
