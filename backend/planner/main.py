"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from planner.api import journeys, routes
from planner.config import settings
from planner.core.planner import JourneyPlanner
from planner.core.postgis_store import PostgisGeometryStore
from planner.db.session import async_session, engine
from planner.exceptions import (
    DegenerateGeometryError,
    NoRouteFound,
    PlanningCancelled,
    StoreQueryFailure,
    UnknownRouteError,
    ValidationError,
)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    store = PostgisGeometryStore(async_session)

    # Wire up API modules
    journeys.planner = JourneyPlanner.from_settings(store)
    routes.store = store
    logger.info(
        "Jeepney planner started - proximity %.0fm, transfer tolerance %.0fm, step %.3f",
        settings.proximity_threshold_m, settings.transfer_tolerance_m, settings.sample_step,
    )

    yield

    # Shutdown
    await engine.dispose()
    logger.info("Jeepney planner shut down")


app = FastAPI(
    title="Jeepney Journey Planner",
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(journeys.router)
app.include_router(routes.router)


def _error(status_code: int, message: str, kind: str, retryable: bool = False, **extra) -> ORJSONResponse:
    body = {"error": message, "kind": kind, "retryable": retryable, **extra}
    return ORJSONResponse(status_code=status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error(400, "Missing or malformed coordinates", "validation",
                  details=jsonable_encoder(exc.errors()))


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return _error(400, str(exc), "validation")


@app.exception_handler(NoRouteFound)
async def no_route_handler(request: Request, exc: NoRouteFound):
    return _error(404, str(exc), "no_route")


@app.exception_handler(UnknownRouteError)
async def unknown_route_handler(request: Request, exc: UnknownRouteError):
    return _error(404, str(exc), "not_found")


@app.exception_handler(StoreQueryFailure)
async def store_failure_handler(request: Request, exc: StoreQueryFailure):
    logger.error("%s %s: %s", request.method, request.url.path, exc)
    return _error(500, "Route calculation failed, try again later", "store_failure", retryable=True)


@app.exception_handler(DegenerateGeometryError)
async def degenerate_geometry_handler(request: Request, exc: DegenerateGeometryError):
    logger.warning("%s %s: %s", request.method, request.url.path, exc)
    return _error(500, str(exc), "degenerate_geometry")


@app.exception_handler(PlanningCancelled)
async def cancelled_handler(request: Request, exc: PlanningCancelled):
    logger.info("%s %s: client went away, planning stopped", request.method, request.url.path)
    return _error(499, str(exc), "cancelled")


@app.get("/api/health")
async def health():
    return {"status": "ok"}
