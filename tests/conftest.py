"""Shared test fixtures."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from photon_gun.api.server import create_app
from photon_gun.models import ResultSubmission
from photon_gun.registry.service import RegistryService
from photon_gun.registry.store import HealthcheckStore


@pytest.fixture
def store(tmp_path) -> HealthcheckStore:
    return HealthcheckStore(db_path=tmp_path / "test.db")


@pytest.fixture
def service(store) -> RegistryService:
    return RegistryService(store)


@pytest.fixture
def app(service) -> FastAPI:
    """Registry app with the test service injected (lifespan leaves it alone)."""
    return create_app(service=service)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_submission():
    """Factory for result submissions with sensible defaults."""

    def _make(
        start_time: float = 1_700_000_000.0,
        passed: bool = True,
        elapsed_time: int = 12,
        message: str | None = None,
    ) -> ResultSubmission:
        return ResultSubmission(
            start_time=start_time, elapsed_time=elapsed_time, passed=passed, message=message,
        )

    return _make
