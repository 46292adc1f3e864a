from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import Header

from nadiki_dashboard.config import api_keys
from nadiki_dashboard.errors import ApiError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"


def validate_api_key(api_key: Optional[str], valid_keys: Optional[List[str]] = None) -> bool:
    if not api_key:
        return False

    keys = api_keys() if valid_keys is None else valid_keys
    if not keys:
        logger.warning("No API keys configured in NADIKI_API_KEYS environment variable")
        return False
    return api_key in keys


def unauthorized() -> ApiError:
    return ApiError(
        401,
        "Unauthorized",
        details=(
            "Invalid or missing API key. Please provide a valid API key in the "
            "x-api-key header."
        ),
        headers={"WWW-Authenticate": "ApiKey"},
    )


async def require_api_key(x_api_key: Optional[str] = Header(None)) -> str:
    if not validate_api_key(x_api_key):
        raise unauthorized()
    return x_api_key
