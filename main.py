"""
FastAPI application entry point.

This module sets up the FastAPI application with all middleware,
routers, and configuration for production use.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import Settings, settings, validate_settings
from core.csrf import CSRFMiddleware
from core.database import Database
from core.exceptions import register_exception_handlers
from core.logging import request_fields, setup_logging
from core.security_headers import SecurityHeadersMiddleware
from core.session import CSRF_HEADER, LEGACY_TOKEN_HEADER
from routers import athlete, auth

logger = logging.getLogger(__name__)


def _filter_sensitive_data(event, hint=None):
    """Filter sensitive data before sending to Sentry."""
    # Remove Authorization headers
    if "request" in event and "headers" in event["request"]:
        headers = event["request"]["headers"]
        if isinstance(headers, dict):
            headers.pop("authorization", None)
            headers.pop("cookie", None)
            headers.pop(LEGACY_TOKEN_HEADER, None)
    return event


def init_sentry(config: Settings) -> None:
    """Initialize Sentry for error tracking when a DSN is configured."""
    if not config.SENTRY_DSN:
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=config.SENTRY_DSN,
            environment=config.ENVIRONMENT,
            traces_sample_rate=config.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
            ],
            # Don't send PII
            send_default_pii=False,
            before_send=_filter_sensitive_data,
        )
        logger.info(f"Sentry initialized for environment: {config.ENVIRONMENT}")
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the application.

    ``database`` is the process-wide datastore handle. When omitted one is
    built from settings and its pool is disposed on shutdown; a handle
    passed in stays open for its owner to dispose. Tables are created and
    the health flag is primed on startup.
    """
    validate_settings(settings)
    setup_logging(settings)
    init_sentry(settings)

    owns_database = database is None
    db = database or Database.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # An unreachable database does not stop the API; /api/health reports it.
        health = db.check_health()
        if health["healthy"]:
            db.create_all()
            logger.info("Database connected successfully")
        else:
            logger.error(f"Database connection failed: {health['error']}")
        yield
        if owns_database:
            db.dispose()

    app = FastAPI(
        title="Iron Forge Athlete API",
        description="Athlete profiles, training details, achievements and performance stats",
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    app.state.db = db
    app.state.settings = settings

    register_exception_handlers(app)

    # Middleware runs in reverse order of registration: the request logger
    # sees every request first, CORS answers preflights before CSRF runs.
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", LEGACY_TOKEN_HEADER, CSRF_HEADER],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request with its status and timing."""
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={"extra_fields": request_fields(request, error=str(e))}
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            f"Response: {request.method} {request.url.path} - {response.status_code}",
            extra={
                "extra_fields": request_fields(
                    request,
                    status_code=response.status_code,
                    process_time_ms=round(process_time * 1000, 2),
                )
            }
        )
        response.headers["X-Process-Time"] = str(process_time)
        return response

    @app.get("/api/health")
    def health(request: Request):
        """
        Health check for load balancers and uptime monitors.

        Returns:
            - 200: API and database reachable
            - 503: API running, database unavailable
        """
        db_health = request.app.state.db.check_health()
        healthy = bool(db_health["healthy"])
        return JSONResponse(
            status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "success": healthy,
                "message": "Iron Forge API is running" if healthy else "API running, DB unavailable",
                "db": db_health,
                "ts": datetime.now(timezone.utc).isoformat(),
            },
        )

    app.include_router(auth.router)
    app.include_router(athlete.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.API_HOST, port=settings.API_PORT)
