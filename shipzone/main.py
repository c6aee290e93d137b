"""
ShipZone — carrier-calculated shipping for zoned warehouses.

App factory and lifespan. Routes live in routers/.

Business Rules:
- Startup: logging, schema sync, inquiry workers, initial zone load
- A store outage at startup is logged, not fatal: the cache starts empty
  and every postcode gets the inquiry rate until a reload succeeds
- Every response carries X-Request-ID; log lines inside a request carry it too
- Errors outside the rate route use the ErrorResponse shape

Called by: uvicorn (shipzone.main:app)
Depends on: dependencies, logging_config, startup, routers/*
"""

import asyncio
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .dependencies import build_services
from .logging_config import setup_logging
from .routers import admin, health, rates
from .schemas.errors import ErrorResponse
from .startup import run_startup_migrations

SHUTDOWN_TIMEOUT_SECONDS = 10


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    services = getattr(app.state, "services", None)
    owns_engine = services is None
    if services is None:
        services = build_services(settings)
        app.state.services = services

    try:
        run_startup_migrations(services.engine)
    except Exception:
        logger.exception("Startup migrations failed; continuing with the existing schema")

    services.dispatcher.start()
    loop = asyncio.get_running_loop()
    snapshot = await loop.run_in_executor(None, services.zone_cache.start)
    logger.info(
        "{} ready ({} zones cached, {})",
        settings.app_name, len(snapshot.zones),
        "loaded" if snapshot.from_store else "store unavailable",
    )

    yield

    services.dispatcher.stop(timeout=SHUTDOWN_TIMEOUT_SECONDS)
    services.zone_cache.close()
    services.gateway.close()
    if owns_engine:
        services.engine.dispose()
    logger.info("{} stopped", settings.app_name)


app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    request.state.request_id = request_id
    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = ErrorResponse(
        error=str(exc.detail), status_code=exc.status_code, request_id=_request_id(request)
    )
    return JSONResponse(body.model_dump(exclude_none=True), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = ErrorResponse(
        error="Validation error",
        status_code=422,
        request_id=_request_id(request),
        detail=[{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()],
    )
    return JSONResponse(body.model_dump(exclude_none=True), status_code=422)


app.include_router(rates.router)
app.include_router(health.router)
app.include_router(admin.router)
