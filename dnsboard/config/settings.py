"""Environment-driven configuration, read once when the app is created."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Optional

from decouple import config

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.cloudflare.com/client/v4"
MIN_REQUEST_TIMEOUT = 15.0
MAX_REQUEST_TIMEOUT = 45.0


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration values."""

    cloudflare_api_token: str = ""
    cloudflare_email: Optional[str] = None
    cloudflare_api_url: str = DEFAULT_API_URL
    cors_origin: str = "http://localhost:5173"
    cache_ttl_ms: int = 60_000
    rate_limit_window_ms: int = 60_000
    rate_limit_max_requests: int = 60
    request_timeout: float = 30.0
    database_url: str = "sqlite:///dnsboard.db"
    log_level: str = "INFO"

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_ms / 1000.0

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_ms / 1000.0


def _clamp_timeout(value: float) -> float:
    return max(MIN_REQUEST_TIMEOUT, min(MAX_REQUEST_TIMEOUT, value))


def load_settings() -> Settings:
    """Load settings from the environment (and .env)."""
    settings = Settings(
        cloudflare_api_token=config("CLOUDFLARE_API_TOKEN", default=""),
        cloudflare_email=config("CLOUDFLARE_EMAIL", default=None),
        cloudflare_api_url=config("CLOUDFLARE_API_URL", default=DEFAULT_API_URL).rstrip("/"),
        cors_origin=config("CORS_ORIGIN", default="http://localhost:5173"),
        cache_ttl_ms=config("CACHE_TTL_MS", default=60_000, cast=int),
        rate_limit_window_ms=config("RATE_LIMIT_WINDOW_MS", default=60_000, cast=int),
        rate_limit_max_requests=config("RATE_LIMIT_MAX_REQUESTS", default=60, cast=int),
        request_timeout=_clamp_timeout(config("REQUEST_TIMEOUT", default=30.0, cast=float)),
        database_url=config("DATABASE_URL", default="sqlite:///dnsboard.db"),
        log_level=config("LOG_LEVEL", default="INFO"),
    )
    if not settings.cloudflare_api_token:
        logger.warning("CLOUDFLARE_API_TOKEN is not set. Provider calls will fail.")
    return settings


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the service."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
