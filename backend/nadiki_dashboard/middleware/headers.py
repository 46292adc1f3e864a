from __future__ import annotations

from typing import Dict, Mapping

from fastapi import Request
from starlette.responses import Response

_STATE_KEY = "response_headers"


def add_response_headers(request: Request, headers: Mapping[str, str]) -> None:
    """Queue headers for whatever response this request ends up with.

    Guards run as dependencies and may short-circuit with an error, so they
    cannot write to the endpoint's response directly.
    """
    pending: Dict[str, str] = getattr(request.state, _STATE_KEY, None) or {}
    pending.update(headers)
    setattr(request.state, _STATE_KEY, pending)


def apply_response_headers(request: Request, response: Response) -> Response:
    pending: Dict[str, str] = getattr(request.state, _STATE_KEY, None) or {}
    for key, value in pending.items():
        response.headers[key] = value
    return response
