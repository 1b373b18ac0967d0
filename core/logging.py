"""
Structured logging configuration.

Log records carry request context in ``extra={"extra_fields": {...}}``. The
JSON formatter merges those fields into the log line; the text formatter
appends them as ``key=value`` pairs. Credential-bearing keys are masked in
both.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from starlette.requests import Request

from core.config import Settings, settings

SERVICE_NAME = "ironforge-api"

# Never written to a log line, whatever logger passes them.
REDACTED_FIELDS = frozenset({
    "password",
    "current_password",
    "new_password",
    "token",
    "csrf_token",
    "authorization",
    "cookie",
})


def _scrub(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: ("[redacted]" if key.lower() in REDACTED_FIELDS else value)
        for key, value in fields.items()
    }


def request_fields(request: Request, **extra: Any) -> Dict[str, Any]:
    """Context fields describing ``request``, for ``extra_fields``."""
    fields: Dict[str, Any] = {
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else None,
    }
    fields.update(extra)
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def __init__(self, environment: Optional[str] = None):
        super().__init__()
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": SERVICE_NAME,
            "module": record.module,
            "line": record.lineno,
        }
        if self.environment:
            log_data["environment"] = self.environment

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(_scrub(record.extra_fields))

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines for local development."""

    def __init__(self):
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, "extra_fields", None)
        if fields:
            pairs = " ".join(f"{k}={v}" for k, v in _scrub(fields).items())
            line = f"{line} [{pairs}]"
        return line


def setup_logging(config: Settings = settings) -> logging.Logger:
    """
    Configure the root logger.

    JSON output when ``LOG_FORMAT=json`` or in production, text otherwise.
    Safe to call more than once; existing handlers are replaced.
    """
    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)

    if config.LOG_FORMAT == "json" or config.is_production:
        formatter: logging.Formatter = JSONFormatter(environment=config.ENVIRONMENT)
    else:
        formatter = TextFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # SQL echo is controlled by DEBUG through the engine, not the log level.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root_logger
