"""
rate_limit.py

Purpose:
  Best-effort fixed-window rate limiting for externally callable endpoints.

Model:
  - Clients are identified by API key when one is sent, else by the first
    `X-Forwarded-For` address, `X-Real-IP`, or "unknown".
  - The first request opens a window `[now, now + window_seconds)`; requests in
    the window increment the counter; the request is allowed while
    `count <= max_requests`.
  - Expired windows are purged at most every 5 minutes.

Scope:
  Counters live in this process only. Several workers each enforce their own
  budget; there is no shared store.
"""
from __future__ import annotations

import hashlib
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request

from nadiki_dashboard.errors import ApiError
from nadiki_dashboard.middleware.headers import add_response_headers

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_S = 5 * 60


@dataclass
class RateLimitEntry:
    count: int
    reset_time: float   # epoch seconds


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_time: float

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(math.floor(self.reset_time))),
        }


def redact_identifier(identifier: str) -> str:
    """Log-safe form of an identifier: API keys become a short digest."""
    prefix, _, value = identifier.partition(":")
    if prefix != "api_key":
        return identifier
    return f"api_key:sha256:{hashlib.sha256(value.encode()).hexdigest()[:12]}"


def client_identifier(request: Request) -> str:
    api_key = request.headers.get("x-api-key")
    if api_key:
        return f"api_key:{api_key}"

    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    ip = forwarded or request.headers.get("x-real-ip") or "unknown"
    return f"ip:{ip}"


class RateLimiter:
    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: int = 60,
        identifier: Optional[Callable[[Request], str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.identifier = identifier or client_identifier
        self.clock = clock
        self._store: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def check(self, key: str) -> RateLimitResult:
        now = self.clock()
        with self._lock:
            if now - self._last_cleanup >= CLEANUP_INTERVAL_S:
                self._cleanup_locked(now)

            entry = self._store.get(key)
            if entry is None or entry.reset_time < now:
                reset_time = now + self.window_seconds
                self._store[key] = RateLimitEntry(count=1, reset_time=reset_time)
                return RateLimitResult(
                    allowed=True,
                    limit=self.max_requests,
                    remaining=self.max_requests - 1,
                    reset_time=reset_time,
                )

            entry.count += 1
            return RateLimitResult(
                allowed=entry.count <= self.max_requests,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - entry.count),
                reset_time=entry.reset_time,
            )

    def cleanup_expired(self) -> int:
        with self._lock:
            return self._cleanup_locked(self.clock())

    def _cleanup_locked(self, now: float) -> int:
        expired = [k for k, e in self._store.items() if e.reset_time < now]
        for k in expired:
            del self._store[k]
        self._last_cleanup = now
        return len(expired)

    def __len__(self) -> int:
        return len(self._store)

    def enforce(self, request: Request) -> RateLimitResult:
        """Count the request; queue X-RateLimit-* headers; raise 429 when over budget."""
        result = self.check(self.identifier(request))
        headers = result.headers()
        add_response_headers(request, headers)

        if not result.allowed:
            retry_after = max(0, math.ceil(result.reset_time - self.clock()))
            logger.warning("rate limit exceeded for %s", redact_identifier(self.identifier(request)))
            raise ApiError(
                429,
                "Rate limit exceeded",
                details=(
                    f"You have exceeded the rate limit of {result.limit} requests per "
                    f"{self.window_seconds} seconds. Please try again later."
                ),
                headers={**headers, "Retry-After": str(retry_after)},
                extra={"retryAfter": retry_after},
            )
        return result
