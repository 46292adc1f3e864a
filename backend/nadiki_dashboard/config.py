from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# backend/.env is optional; real environment variables win
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env", override=False)

_TRUE = {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in _TRUE


def env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None:
        return default
    try:
        return int(val.strip())
    except Exception:
        return default


def env_str(name: str, default: str = "") -> str:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip()


def env_list(name: str, default: Optional[List[str]] = None) -> List[str]:
    """Comma separated variable -> list of trimmed, non-empty items."""
    val = os.getenv(name)
    if val is None:
        return list(default or [])
    return [item.strip() for item in val.split(",") if item.strip()]


@dataclass
class RegistrarSettings:
    base_url: str = "https://registrar.svc.nadiki.work"
    username: str = ""
    password: str = ""
    timeout_s: float = 10.0
    # the registrar is deployed with self-signed certificates
    verify_tls: bool = False

    @classmethod
    def from_env(cls) -> "RegistrarSettings":
        return cls(
            base_url=env_str("REGISTRAR_API_BASE_URL", cls.base_url).rstrip("/") or cls.base_url,
            username=env_str("REGISTRAR_API_USERNAME"),
            password=env_str("REGISTRAR_API_PASSWORD"),
            timeout_s=float(env_int("REGISTRAR_API_TIMEOUT_S", 10)),
            verify_tls=env_flag("REGISTRAR_API_VERIFY_TLS", False),
        )


@dataclass
class RateLimitSettings:
    max_requests: int = 100
    window_seconds: int = 60

    @classmethod
    def from_env(cls) -> "RateLimitSettings":
        return cls(
            max_requests=env_int("API_RATE_LIMIT_MAX_REQUESTS", 100),
            window_seconds=env_int("API_RATE_LIMIT_WINDOW_SECONDS", 60),
        )


@dataclass
class InfluxSettings:
    impact_bucket: str = "facility-impact"
    timeout_s: float = 30.0

    @classmethod
    def from_env(cls) -> "InfluxSettings":
        return cls(
            impact_bucket=env_str("INFLUX_IMPACT_BUCKET", "facility-impact") or "facility-impact",
            timeout_s=float(env_int("INFLUX_TIMEOUT_S", 30)),
        )


@dataclass
class Settings:
    registrar: RegistrarSettings = field(default_factory=RegistrarSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    influx: InfluxSettings = field(default_factory=InfluxSettings)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            registrar=RegistrarSettings.from_env(),
            rate_limit=RateLimitSettings.from_env(),
            influx=InfluxSettings.from_env(),
            log_level=env_str("LOG_LEVEL", "INFO").upper() or "INFO",
        )


def allowed_origins() -> List[str] | str:
    """ALLOWED_ORIGINS as a list, or "*" when unset or wildcard."""
    origins = env_list("ALLOWED_ORIGINS")
    if not origins or origins == ["*"]:
        return "*"
    return origins


def api_keys() -> List[str]:
    return env_list("NADIKI_API_KEYS")
