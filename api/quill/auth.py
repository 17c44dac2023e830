from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import models
from .deps import get_db
from .errors import Forbidden, Unauthorized

bearer_scheme = HTTPBearer(auto_error=False)

MIN_SECRET_KEY_LENGTH = 32


def _load_secret_key() -> str:
    """Read the HS256 signing key; the process refuses to start without a strong one."""
    key = os.getenv("JWT_SECRET_KEY", "")
    if len(key) < MIN_SECRET_KEY_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET_KEY must be set to at least {MIN_SECRET_KEY_LENGTH} characters "
            "(e.g. the output of secrets.token_urlsafe(32))"
        )
    return key


JWT_SECRET_KEY = _load_secret_key()
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))


@dataclass(frozen=True)
class IdentityClaims:
    """Contents of a verified identity assertion."""

    user_id: int
    email: str
    first_name: str
    last_name: str
    picture: str
    expires_at: datetime


def issue_identity_assertion(
    user: models.User, expires_in_seconds: int | None = None
) -> str:
    """
    Mint a signed, time-bounded identity assertion for a user.

    The token carries the display snapshot current at issue time, so it must
    be re-issued after a profile change.
    """
    if expires_in_seconds is None:
        expires_in_seconds = JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60

    now = datetime.now(timezone.utc)
    payload = {
        "user_id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "picture": user.picture or "",
        "iat": now,
        "exp": now + timedelta(seconds=expires_in_seconds),
    }

    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_identity_assertion(token: str) -> IdentityClaims:
    """
    Verify an identity assertion and return its claims.

    Raises:
        Unauthorized: If the token is expired, tampered with or incomplete
    """
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token")

    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        raise Unauthorized("Invalid token: missing user_id")

    return IdentityClaims(
        user_id=user_id,
        email=payload.get("email", ""),
        first_name=payload.get("first_name", ""),
        last_name=payload.get("last_name", ""),
        picture=payload.get("picture", ""),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    """Resolve the caller from the bearer identity assertion, reloading the user record."""
    if not credentials:
        raise Unauthorized("No token provided")

    claims = verify_identity_assertion(credentials.credentials)

    user = db.query(models.User).filter(models.User.id == claims.user_id).first()
    if not user:
        raise Unauthorized("User not found")

    return user


def require_ownership(resource_owner_id: int, current_user: models.User) -> None:
    """
    Require that the current user owns a resource.

    Raises Forbidden if not.
    """
    if resource_owner_id != current_user.id:
        raise Forbidden("You don't have permission to access this resource")
