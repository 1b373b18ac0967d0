"""
Session and CSRF credentials.

Two cooperating credentials authenticate a request:

- a signed session token (JWT) carried either as a bearer header or in the
  httpOnly ``ams_token`` cookie
- a random CSRF token stored in the script-readable ``ams_csrf`` cookie and
  echoed back by browser clients in the ``x-csrf-token`` header

Bearer clients never need the CSRF token. Cookie-session clients must echo
it on every state-changing request.

The functions here work on ``SessionRequest``, a plain view of the parts of
an HTTP request they read, so they stay independent of the web framework.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
import logging
import re
import secrets

from jose import ExpiredSignatureError, JWTError
from starlette.requests import Request
from starlette.responses import Response

from core.config import settings
from core.exceptions import UnauthorizedError
from core.security import create_access_token, decode_session_token

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "ams_token"
CSRF_COOKIE = "ams_csrf"
CSRF_HEADER = "x-csrf-token"
LEGACY_TOKEN_HEADER = "x-auth-token"

CSRF_TOKEN_BYTES = 24
UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

_BEARER_PREFIX = re.compile(r"^Bearer\s+", re.IGNORECASE)


@dataclass
class SessionRequest:
    """The request fields the session layer reads. Header names are lowercase."""

    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_request(cls, request: Request) -> "SessionRequest":
        return cls(
            method=request.method.upper(),
            headers={k.lower(): v for k, v in request.headers.items()},
            cookies=dict(request.cookies),
        )

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


@dataclass(frozen=True)
class AuthContext:
    """Identity proven by a verified session token."""

    user_id: int
    email: str
    role: str


@dataclass(frozen=True)
class IssuedSession:
    token: str
    csrf_token: str
    max_age: int


def generate_csrf_token() -> str:
    return secrets.token_hex(CSRF_TOKEN_BYTES)


def issue_session(claims: AuthContext) -> IssuedSession:
    """Sign a session token for ``claims`` and pair it with a fresh CSRF token."""
    token = create_access_token(
        {"sub": str(claims.user_id), "email": claims.email, "role": claims.role}
    )
    return IssuedSession(
        token=token,
        csrf_token=generate_csrf_token(),
        max_age=settings.session_max_age_seconds,
    )


def cookie_options(http_only: bool) -> Dict[str, Any]:
    """Attributes shared by both session cookies, at issuance and at clearing."""
    prod = settings.is_production
    return {
        "httponly": http_only,
        "secure": prod,
        "samesite": "none" if prod else "lax",
        "path": "/",
    }


def set_csrf_cookie(response: Response, csrf_token: str) -> None:
    response.set_cookie(
        CSRF_COOKIE,
        csrf_token,
        max_age=settings.session_max_age_seconds,
        **cookie_options(http_only=False),
    )


def set_session_cookies(response: Response, issued: IssuedSession) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        issued.token,
        max_age=issued.max_age,
        **cookie_options(http_only=True),
    )
    set_csrf_cookie(response, issued.csrf_token)


def revoke_session(response: Response) -> None:
    """Clear both cookies. Browsers only drop a cookie when the attributes match."""
    response.delete_cookie(TOKEN_COOKIE, **cookie_options(http_only=True))
    response.delete_cookie(CSRF_COOKIE, **cookie_options(http_only=False))


def has_bearer_credential(request: SessionRequest) -> bool:
    return bool(request.header("authorization") or request.header(LEGACY_TOKEN_HEADER))


def extract_token(request: SessionRequest) -> Optional[str]:
    """
    Find the session token, in priority order:

    1. ``Authorization: Bearer <token>`` header
    2. ``x-auth-token`` header (legacy clients)
    3. ``ams_token`` cookie
    """
    bearer = _BEARER_PREFIX.sub("", request.header("authorization") or "")
    token = bearer or request.header(LEGACY_TOKEN_HEADER)
    if not token:
        token = request.cookies.get(TOKEN_COOKIE)
    return token or None


def verify_request(request: SessionRequest) -> AuthContext:
    """Authenticate ``request`` or raise ``UnauthorizedError``."""
    token = extract_token(request)
    if not token:
        raise UnauthorizedError("No token, authorisation denied.")

    try:
        payload = decode_session_token(token)
    except ExpiredSignatureError:
        raise UnauthorizedError("Token has expired, please log in again.")
    except JWTError:
        raise UnauthorizedError("Invalid token.")

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedError("Invalid token.")

    return AuthContext(
        user_id=user_id,
        email=payload.get("email") or "",
        role=payload.get("role") or "athlete",
    )


def verify_csrf(request: SessionRequest) -> bool:
    """
    Check the double-submit CSRF token on state-changing requests.

    Safe methods, bearer-authenticated requests and requests without a
    session cookie always pass.
    """
    if request.method.upper() not in UNSAFE_METHODS:
        return True

    if has_bearer_credential(request):
        return True

    if not request.cookies.get(TOKEN_COOKIE):
        return True

    from_header = request.header(CSRF_HEADER)
    from_cookie = request.cookies.get(CSRF_COOKIE)
    if not from_header or not from_cookie:
        return False
    return secrets.compare_digest(from_header.encode("utf-8"), from_cookie.encode("utf-8"))
