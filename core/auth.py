# ABOUTME: Password hashing, sign-up field checks and JWT creation/validation for API auth.
# ABOUTME: get_current_user dependency resolves the student whose data a request may touch.

import bcrypt
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from core.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ALGORITHM,
    MAX_DISPLAY_NAME_LENGTH,
    MAX_EMAIL_LENGTH,
    MIN_PASSWORD_LENGTH,
    SECRET_KEY,
)
from core.database import User, get_session

_http_bearer = HTTPBearer(auto_error=False)

# bcrypt truncates passwords at 72 bytes; we hash utf-8 bytes.
_BCRYPT_MAX_PASSWORD_BYTES = 72

# Pre-computed bcrypt hash for a constant string; used when no account matches so login
# always runs verify_password (constant-time, prevents email enumeration).
DUMMY_PASSWORD_HASH = "$2b$12$DbmI/yRDB5j9Q8I7R9cb5.9jZPh/c32i4pA35t4vTf2jdq32n.L.S"


def _password_bytes(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_PASSWORD_BYTES]


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the plain-text password (UTF-8, truncated at 72 bytes)."""
    return bcrypt.hashpw(_password_bytes(plain), bcrypt.gensalt()).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(_password_bytes(plain), hashed.encode("ascii"))


def validate_password_length(password: str) -> None:
    """Raise ValueError if password is shorter than MIN_PASSWORD_LENGTH."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def normalize_email(email: str) -> str:
    """Strip and lowercase; raise ValueError unless it looks like name@domain."""
    cleaned = (email or "").strip().lower()
    if not cleaned:
        raise ValueError("Email cannot be empty")
    if len(cleaned) > MAX_EMAIL_LENGTH:
        raise ValueError(f"Email must be at most {MAX_EMAIL_LENGTH} characters")
    local, _, domain = cleaned.partition("@")
    if not local or "." not in domain:
        raise ValueError("Enter a valid email address")
    return cleaned


def display_name_for(email: str, name: str | None = None) -> str:
    """Use the given name, falling back to the part of the email before '@'."""
    chosen = (name or "").strip() or email.split("@")[0]
    if len(chosen) > MAX_DISPLAY_NAME_LENGTH:
        raise ValueError(f"Name must be at most {MAX_DISPLAY_NAME_LENGTH} characters")
    return chosen


def create_access_token(user_id: UUID) -> str:
    """Build a JWT with sub=user_id and exp set from ACCESS_TOKEN_EXPIRE_MINUTES."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": str(user_id), "exp": expire}
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> UUID | None:
    """Decode the JWT and return the subject (user id) or None if invalid/expired."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        sub = payload.get("sub")
        if sub is None:
            return None
        return UUID(sub)
    except (JWTError, ValueError):
        return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_http_bearer),
) -> User:
    """FastAPI dependency: require Authorization Bearer token and return the User or 401."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise _unauthorized("Invalid or expired token")
    with get_session() as session:
        user = session.get(User, user_id)
        if user is None:
            raise _unauthorized("User not found")
        return user
