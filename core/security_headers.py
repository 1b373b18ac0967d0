"""
Security Headers Middleware

Adds browser hardening headers to every response, errors included. The
API only serves JSON, so framing and content sniffing are denied outright.
"""
from typing import Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from core.config import settings

BASE_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
    "Permissions-Policy": "camera=(), geolocation=(), microphone=(), payment=()",
}

# Cookies are Secure in production, so the API is only reachable over HTTPS there.
PRODUCTION_HEADERS: Dict[str, str] = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


def security_headers(production: bool) -> Dict[str, str]:
    headers = dict(BASE_HEADERS)
    if production:
        headers.update(PRODUCTION_HEADERS)
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in security_headers(settings.is_production).items():
            response.headers.setdefault(name, value)
        return response
