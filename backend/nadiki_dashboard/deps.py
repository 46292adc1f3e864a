"""
deps.py

Purpose:
  Dependency Injection (DI) container for the application.
  Holds process-wide singletons so per-process state (rate-limit counters,
  running calculators) survives across requests.

Services Managed:
  - `RegistrarClient` (external facility/rack/server API)
  - `CalculatorService` (impact calculator registry)
  - `RateLimiter` (per-route request budget)
  - InfluxDB client factory (built per entity from its `timeSeriesConfig`)

Pattern:
  - `lru_cache(maxsize=1)` enforces one instance per process.
  - Tests swap any of these through `app.dependency_overrides`.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Callable, Mapping

from fastapi import Depends, Request

from nadiki_dashboard.config import Settings
from nadiki_dashboard.middleware.rate_limit import RateLimiter, RateLimitResult
from nadiki_dashboard.models.db import get_session  # noqa: F401  (re-exported for routers)
from nadiki_dashboard.services.calculator import CalculatorService
from nadiki_dashboard.services.influx import InfluxClient
from nadiki_dashboard.services.registrar_client import RegistrarClient

InfluxFactory = Callable[[Mapping[str, Any]], InfluxClient]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache(maxsize=1)
def get_registrar_client() -> RegistrarClient:
    return RegistrarClient(get_settings().registrar)


@lru_cache(maxsize=1)
def get_calculator_service() -> CalculatorService:
    return CalculatorService()


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    s = get_settings().rate_limit
    return RateLimiter(max_requests=s.max_requests, window_seconds=s.window_seconds)


def get_influx_factory() -> InfluxFactory:
    timeout_s = get_settings().influx.timeout_s

    def build(config: Mapping[str, Any]) -> InfluxClient:
        return InfluxClient.from_config(config, timeout_s=timeout_s)

    return build


async def enforce_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> RateLimitResult:
    return limiter.enforce(request)
