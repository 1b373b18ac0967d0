"""
Authentication and authorization dependencies.

Provides FastAPI dependencies for:
- Getting the current authenticated identity
- Role-based access control
"""
from fastapi import Depends, Request

from core.exceptions import ForbiddenError
from core.session import AuthContext, SessionRequest, verify_request


def get_current_user(request: Request) -> AuthContext:
    """
    Get the current authenticated identity from the session token.

    The token may arrive as a bearer header, the legacy ``x-auth-token``
    header, or the session cookie. Raises 401 if it is missing, invalid or
    expired.
    """
    return verify_request(SessionRequest.from_request(request))


def require_role(allowed_roles: list[str]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/coach-only")
        def coach_endpoint(user: AuthContext = Depends(require_role(["coach"]))):
            ...
    """
    def role_checker(current_user: AuthContext = Depends(get_current_user)) -> AuthContext:
        if current_user.role not in allowed_roles:
            raise ForbiddenError("Insufficient permissions.")
        return current_user

    return role_checker
