"""
GNC workshop alerts API

FastAPI application factory. Domain errors map to HTTP codes here so the
route handlers stay thin:

- ValidationFailure -> 422
- ProcedureNotFoundError -> 404
- InvalidTransitionError -> 409
- PersistenceError -> 500 (``statusCommitted`` for pickup payment failures)
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gnc_alerts.common.db import dispose_engines
from gnc_alerts.common.errors import (
    InvalidTransitionError,
    PaymentUpdateError,
    PersistenceError,
    ProcedureNotFoundError,
    ValidationFailure,
)
from gnc_alerts.common.json_logger import log_event
from gnc_alerts.services import Services, services_from_config

from . import alert_routes, pickup_routes


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationFailure)
    async def _validation(request: Request, exc: ValidationFailure):
        return JSONResponse(status_code=422, content={"error": str(exc)})

    @app.exception_handler(ProcedureNotFoundError)
    async def _not_found(request: Request, exc: ProcedureNotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc), "procedureId": exc.procedure_id})

    @app.exception_handler(InvalidTransitionError)
    async def _conflict(request: Request, exc: InvalidTransitionError):
        return JSONResponse(
            status_code=409,
            content={"error": str(exc), "currentStatus": exc.current_status, "action": exc.action},
        )

    @app.exception_handler(PersistenceError)
    async def _persistence(request: Request, exc: PersistenceError):
        services: Services = request.app.state.services
        log_event(
            logger=services.logger,
            phase="api",
            status="error",
            message="request failed on the store",
            path=request.url.path,
            error=str(exc),
            cause=repr(exc.__cause__) if exc.__cause__ else None,
        )
        content = {"error": str(exc)}
        if isinstance(exc, PaymentUpdateError):
            content["statusCommitted"] = exc.status_committed
            content["procedureId"] = exc.procedure_id
        return JSONResponse(status_code=500, content=content)


def create_app(*, services: Optional[Services] = None, strict_pickups: bool = False) -> FastAPI:
    """Build the API; without ``services`` the wiring comes from ``get_config()``."""
    if services is None:
        from gnc_alerts.config import get_config

        services = services_from_config(get_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_event(logger=services.logger, phase="api", message="API started", run_env=services.run_env)
        yield
        await dispose_engines()
        log_event(logger=services.logger, phase="api", message="API stopped")

    app = FastAPI(
        title="GNC Alerts API",
        description="ENARGAS expiration alerts and document pickup tracking",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.strict_pickups = strict_pickups

    _register_error_handlers(app)
    app.include_router(alert_routes.router)
    app.include_router(pickup_routes.router)

    @app.get("/health", tags=["system"])
    async def health():
        return {"status": "ok"}

    return app
