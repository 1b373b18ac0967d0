"""
CSRF Middleware

Rejects state-changing cookie-session requests whose ``x-csrf-token``
header does not match the ``ams_csrf`` cookie. Runs before routing, so a
rejected request never reaches a handler or opens a database session.
"""
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from core.exceptions import error_body
from core.logging import request_fields
from core.session import CSRF_COOKIE, CSRF_HEADER, SessionRequest, verify_csrf

logger = logging.getLogger(__name__)

CSRF_FAILURE_MESSAGE = "CSRF validation failed."


class CSRFMiddleware(BaseHTTPMiddleware):
    """Double-submit cookie check for browser clients."""

    async def dispatch(self, request: Request, call_next) -> Response:
        session_request = SessionRequest.from_request(request)
        if not verify_csrf(session_request):
            logger.warning(
                f"CSRF validation failed: {request.method} {request.url.path}",
                extra={
                    "extra_fields": request_fields(
                        request,
                        has_header=session_request.header(CSRF_HEADER) is not None,
                        has_cookie=CSRF_COOKIE in session_request.cookies,
                    )
                }
            )
            return JSONResponse(
                status_code=403,
                content=error_body(CSRF_FAILURE_MESSAGE, "FORBIDDEN"),
            )
        return await call_next(request)
