"""FastAPI server for the healthcheck registry."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from photon_gun import __version__
from photon_gun.api.routes import router
from photon_gun.config import Settings, settings
from photon_gun.registry.service import RegistryService
from photon_gun.registry.store import HealthcheckStore

logger = logging.getLogger(__name__)


def build_service(conf: Settings) -> RegistryService:
    store = HealthcheckStore(db_path=conf.database_path)
    return RegistryService(
        store,
        default_limit=conf.default_list_limit,
        max_limit=conf.max_list_limit,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the configuration store on startup (unless one was injected)."""
    if getattr(app.state, "registry", None) is None:
        try:
            app.state.registry = build_service(app.state.settings)
        except Exception:
            # A broken store must not serve silently-wrong answers
            logger.exception("Failed to open configuration store at %s", app.state.settings.database_path)
            raise
        logger.info("Configuration store ready: %s", app.state.settings.database_path)

    yield

    app.state.registry.store.close()


async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed requests with the same 400 InvalidArgument shape the routes use."""
    detail = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"detail": detail})


def create_app(
    conf: Settings | None = None,
    service: RegistryService | None = None,
) -> FastAPI:
    app = FastAPI(
        title="photon-gun - Healthcheck Registry",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = conf or settings
    app.state.registry = service

    app.add_exception_handler(RequestValidationError, validation_error)
    app.include_router(router, prefix="/api")

    return app


app = create_app()
