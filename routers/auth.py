"""
Authentication API endpoints.

Provides:
- Signup (creates the account and issues a session)
- Login
- Current user lookup
- Password change
- Logout (clears the session cookies)

Every issuing endpoint sets the httpOnly session cookie and the readable
CSRF cookie, and returns the CSRF token in the body for script clients.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from core.auth import get_current_user
from core.config import settings
from core.database import get_db
from core.exceptions import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError
from core.security import get_password_hash, verify_password
from core.session import (
    CSRF_COOKIE,
    TOKEN_COOKIE,
    AuthContext,
    generate_csrf_token,
    issue_session,
    revoke_session,
    set_csrf_cookie,
    set_session_cookies,
)
from models import AthleteProfile, TrainingDetails, User
from schemas import ChangePasswordRequest, LoginRequest, SignupRequest, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _session_body(response: Response, user: User) -> Dict[str, Any]:
    """Issue a session for ``user``, set both cookies, and build the shared body fields."""
    issued = issue_session(AuthContext(user_id=user.id, email=user.email, role=user.role))
    set_session_cookies(response, issued)

    body: Dict[str, Any] = {
        "user": UserResponse.model_validate(user).model_dump(mode="json", exclude={"created_at"}),
        "csrfToken": issued.csrf_token,
    }
    # Non-cookie clients in development read the token from the body.
    if not settings.is_production:
        body["token"] = issued.token
    return body


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(
    payload: SignupRequest,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Register a new account.

    The duplicate check, the user insert and the athlete's empty profile
    rows share one transaction. The unique index on ``users.email`` settles
    concurrent signups: the loser's commit fails and maps to 409.
    """
    existing = db.query(User.id).filter(User.email == payload.email).first()
    if existing:
        raise ConflictError("Email already registered.")

    user = User(
        full_name=payload.full_name,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        role=payload.role,
    )

    try:
        db.add(user)
        db.flush()
        if user.role == "athlete":
            db.add(AthleteProfile(user_id=user.id))
            db.add(TrainingDetails(user_id=user.id))
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Signup lost duplicate-email race for {payload.email}")
        raise ConflictError("Email already registered.")

    db.refresh(user)
    logger.info(f"New {user.role} account created: id={user.id}")

    return {
        "success": True,
        "message": "Account created successfully.",
        **_session_body(response, user),
    }


@router.post("/login")
def login(
    credentials: LoginRequest,
    response: Response,
    db: Session = Depends(get_db)
):
    """Authenticate with email and password and start a session."""
    user = db.query(User).filter(User.email == credentials.email).first()

    if not user:
        raise UnauthorizedError("Invalid credentials.")

    if not user.is_active:
        raise ForbiddenError("Account is deactivated.")

    if not verify_password(credentials.password, user.password_hash):
        raise UnauthorizedError("Invalid credentials.")

    return {
        "success": True,
        "message": "Login successful.",
        **_session_body(response, user),
    }


@router.get("/me")
def get_current_user_info(
    request: Request,
    response: Response,
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get the current user.

    A cookie session that lost its CSRF cookie gets a fresh one here, so the
    browser can keep making state-changing requests.
    """
    user = db.query(User).filter(User.id == current_user.user_id).first()
    if not user:
        raise NotFoundError("User not found.")

    csrf_token = request.cookies.get(CSRF_COOKIE)
    if request.cookies.get(TOKEN_COOKIE) and not csrf_token:
        csrf_token = generate_csrf_token()
        set_csrf_cookie(response, csrf_token)

    return {
        "success": True,
        "user": UserResponse.model_validate(user).model_dump(mode="json"),
        "csrfToken": csrf_token,
    }


@router.post("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    current_user: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = db.query(User).filter(User.id == current_user.user_id).first()
    if not user:
        raise NotFoundError("User not found.")

    if not verify_password(payload.current_password, user.password_hash):
        raise UnauthorizedError("Current password is incorrect.")

    user.password_hash = get_password_hash(payload.new_password)
    db.commit()
    logger.info(f"Password changed for user id={user.id}")

    return {"success": True, "message": "Password changed successfully."}


@router.post("/logout")
def logout(response: Response):
    """Clear both session cookies. Always succeeds."""
    revoke_session(response)
    return {"success": True, "message": "Logged out successfully."}
