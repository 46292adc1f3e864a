from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nadiki_dashboard.api import (
    routes_calculator,
    routes_facilities,
    routes_health,
    routes_metrics,
    routes_racks,
    routes_servers,
    routes_timeseries,
    routes_workloads,
)
from nadiki_dashboard.deps import get_settings
from nadiki_dashboard.errors import ApiError
from nadiki_dashboard.logging_setup import configure_logging
from nadiki_dashboard.middleware.headers import apply_response_headers
from nadiki_dashboard.models.db import create_db_and_tables

logger = logging.getLogger(__name__)

# loc prefixes that say where a value came from, not which field it is
_LOC_SOURCES = {"body", "query", "path", "header", "cookie"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_settings().log_level)
    create_db_and_tables()
    logger.info("nadiki dashboard backend started")
    yield


# ============================================================
# 1) FASTAPI APP SETUP
# ============================================================

# No global CORSMiddleware: CORS is applied per route (see middleware/cors.py),
# and a global one would answer preflights before the route's own policy.
app = FastAPI(
    title="Nadiki Dashboard Backend",
    version="0.1.0",
    description="Asset registry proxy, workload registry and time-series queries for data center impact dashboards.",
    lifespan=lifespan,
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception as exc:
        # unhandled route errors surface here rather than in ServerErrorMiddleware
        response = unexpected_error_response(request, exc)

    apply_response_headers(request, response)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "%s %s -> %s (%.1f ms) [%s]",
        request.method, request.url.path, response.status_code,
        (time.perf_counter() - started) * 1000.0, request_id,
    )
    return response


# ============================================================
# 2) ERROR HANDLERS
# ============================================================

def _field_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    out = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in _LOC_SOURCES]
        out.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return out


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s -> %s %s: %s", request.method, request.url.path, exc.status_code, exc.error, exc.details)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=exc.headers or None)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if any(e.get("type") == "json_invalid" for e in errors):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid JSON in request body", "details": errors[0].get("msg")},
        )
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": _field_errors(errors)},
    )


def unexpected_error_response(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled error on %s %s", request.method, request.url.path,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse(
        status_code=500,
        content={"error": "An unexpected error occurred", "details": str(exc) or type(exc).__name__},
    )


# ============================================================
# 3) ROUTERS
# ============================================================

app.include_router(routes_health.router, tags=["health"])
app.include_router(routes_facilities.router, prefix="/api/facilities", tags=["facilities"])
app.include_router(routes_racks.router, prefix="/api/racks", tags=["racks"])
app.include_router(routes_servers.router, prefix="/api/servers", tags=["servers"])
app.include_router(routes_workloads.router, prefix="/api/workloads", tags=["workloads"])
app.include_router(routes_metrics.router, prefix="/api/metrics", tags=["metrics"])
app.include_router(routes_calculator.router, prefix="/api/calculator", tags=["calculator"])
app.include_router(routes_timeseries.router, prefix="/api/timeseries", tags=["timeseries"])


# ============================================================
# 4) LOCAL RUN INSTRUCTIONS
# ============================================================
# Run (from backend/):
#   uvicorn nadiki_dashboard.main:app --reload --port 8000
#
# Open docs:
#   http://localhost:8000/docs
