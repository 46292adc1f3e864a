"""
cors.py

Per-route CORS for endpoints meant to be called from other origins.
Defaults are overridden field by field through `CorsConfig(...)`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from fastapi import Request
from starlette.responses import Response

from nadiki_dashboard.middleware.headers import add_response_headers

Origins = Union[str, List[str]]


@dataclass
class CorsConfig:
    # "*" or an explicit origin list
    allowed_origins: Origins = "*"
    allowed_methods: Optional[List[str]] = field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )
    allowed_headers: Optional[List[str]] = field(
        default_factory=lambda: ["Content-Type", "Authorization", "X-Api-Key", "X-Requested-With"]
    )
    exposed_headers: Optional[List[str]] = field(
        default_factory=lambda: ["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"]
    )
    max_age: Optional[int] = 86400
    credentials: bool = False


def is_origin_allowed(origin: Optional[str], allowed_origins: Origins) -> bool:
    if allowed_origins == "*":
        return True
    if not origin:
        return False
    return origin in allowed_origins


def cors_headers(origin: Optional[str], config: Optional[CorsConfig] = None) -> Dict[str, str]:
    config = config or CorsConfig()
    headers: Dict[str, str] = {}

    if config.allowed_origins == "*":
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin and is_origin_allowed(origin, config.allowed_origins):
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"

    if config.allowed_methods:
        headers["Access-Control-Allow-Methods"] = ", ".join(config.allowed_methods)
    if config.allowed_headers:
        headers["Access-Control-Allow-Headers"] = ", ".join(config.allowed_headers)
    if config.exposed_headers:
        headers["Access-Control-Expose-Headers"] = ", ".join(config.exposed_headers)
    if config.max_age is not None:
        headers["Access-Control-Max-Age"] = str(config.max_age)
    if config.credentials:
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


def preflight_response(request: Request, config: Optional[CorsConfig] = None) -> Response:
    return Response(status_code=204, headers=cors_headers(request.headers.get("origin"), config))


class RouteCors:
    """Dependency adding CORS headers to every response of a route.

    `config` may be a callable so environment changes are picked up per request.
    """

    def __init__(self, config: Union[CorsConfig, Callable[[], CorsConfig], None] = None):
        self._config = config

    def config(self) -> CorsConfig:
        if callable(self._config):
            return self._config()
        return self._config or CorsConfig()

    async def __call__(self, request: Request) -> None:
        add_response_headers(request, cors_headers(request.headers.get("origin"), self.config()))

    def preflight(self, request: Request) -> Response:
        return preflight_response(request, self.config())
