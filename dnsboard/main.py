import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dnsboard.config.database import ConfigDatabase
from dnsboard.config.settings import Settings, configure_logging, load_settings
from dnsboard.errors import DnsboardError, RateLimited
from dnsboard.history.model import OperationHistory
from dnsboard.history.routes import history_router
from dnsboard.ratelimit import RateLimiter
from dnsboard.records.model import DNSRecord
from dnsboard.records.routes import record_router
from dnsboard.services import build_services
from dnsboard.zones.model import Zone
from dnsboard.zones.routes import zone_router

logger = logging.getLogger(__name__)

MODELS = [Zone, DNSRecord, OperationHistory]


async def handle_dnsboard_error(request: Request, exc: DnsboardError):
    headers = {}
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s %s", request.method, request.url.path, exc.code, exc.details)
    return JSONResponse(exc.to_response(), status_code=exc.status_code, headers=headers)


async def handle_request_validation(request: Request, exc: RequestValidationError):
    fields = {".".join(str(p) for p in err["loc"] if p != "body"): err["msg"] for err in exc.errors()}
    body = {"success": False, "error": "Invalid request", "code": "VALIDATION_ERROR",
            "details": {"fields": fields, "outcome": "not_applied"}}
    return JSONResponse(body, status_code=400)


async def handle_unexpected(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        {"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"}, status_code=500
    )


def create_app(settings: Optional[Settings] = None, client=None, clock=None) -> FastAPI:
    """Build the application; every shared component lives on ``app.state``."""
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    ConfigDatabase.bind(settings.database_url)
    ConfigDatabase(models=MODELS).refresh_tables()

    extra = {"clock": clock} if clock else {}
    services = build_services(settings, client=client, **extra)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        services.client.close()
        if not ConfigDatabase.database.is_closed():
            ConfigDatabase.database.close()

    app = FastAPI(title="dnsboard", lifespan=lifespan)
    app.state.settings = settings
    app.state.services = services
    app.state.rate_limiter = RateLimiter(
        settings.rate_limit_max_requests, settings.rate_limit_window_seconds, **extra
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(DnsboardError, handle_dnsboard_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)

    app.include_router(zone_router)
    app.include_router(record_router)
    app.include_router(history_router)

    @app.get("/api/v1/health")
    def health():
        return {"success": True, "status": "ok"}

    return app


def main():
    settings = load_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
