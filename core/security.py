"""
Security utilities for authentication.

Provides:
- Password hashing (bcrypt)
- Session token (JWT) generation and validation

SECURITY REQUIREMENTS:
- SECRET_KEY must be set via environment variable
- SECRET_KEY must be cryptographically secure (32+ characters),
  checked by ``validate_settings`` when the application is created
- SECRET_KEY must be different for each environment (dev/staging/prod)
- SECRET_KEY must NEVER be committed to source control
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
from jose import jwt
import bcrypt
from core.config import settings

ALGORITHM = "HS256"


def session_ttl() -> timedelta:
    return timedelta(days=settings.SESSION_TTL_DAYS)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return bcrypt.checkpw(
        plain_password.encode('utf-8'),
        hashed_password.encode('utf-8')
    )


def get_password_hash(password: str) -> str:
    """Hash a password."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed session token carrying ``data`` plus iat/exp claims."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else session_ttl())
    to_encode.update({"iat": now, "exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_session_token(token: str) -> Dict:
    """
    Decode and validate a session token.

    Raises ``jose.ExpiredSignatureError`` for an expired token and
    ``jose.JWTError`` for any other verification failure.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
