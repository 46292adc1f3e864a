from __future__ import annotations

from typing import Any, Dict, Optional


class ApiError(Exception):
    """An error response with the `{"error", "details"}` body shape."""

    def __init__(
        self,
        status_code: int,
        error: str,
        details: Any = None,
        headers: Optional[Dict[str, str]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details
        self.headers = headers or {}
        self.extra = extra or {}

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        body.update(self.extra)
        return body


class RegistrarError(Exception):
    """Non-2xx reply (or transport failure) from the registrar API."""

    def __init__(self, status_code: Optional[int], payload: Any = None, message: str = ""):
        super().__init__(message or f"registrar responded with {status_code}")
        self.status_code = status_code
        self.payload = payload


class InfluxQueryError(Exception):
    """Failed Flux query against a time-series endpoint."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def from_registrar_error(
    e: RegistrarError,
    entity: str,
    verb: str,
    map_client_errors: bool = True,
) -> ApiError:
    """Translate an upstream failure for `<verb> <entity>` into a local response.

    400 and 404 keep their status; everything else, including transport
    failures, becomes a generic 500.
    """
    if map_client_errors and e.status_code == 400:
        return ApiError(400, f"Invalid {entity} data", details=e.payload)
    if map_client_errors and e.status_code == 404:
        return ApiError(404, f"{entity.capitalize()} not found")
    return ApiError(500, f"Failed to {verb} {entity}")
