"""Authentication helpers and FastAPI security dependencies.

This module issues and decodes JWT tokens and exposes the dependencies
that turn a bearer token into a request-scoped `Principal`. Handlers
pass the principal explicitly into service calls; nothing about the
caller is kept in module state.

Token problems raise HTTPExceptions so the dependencies can be used
directly in route signatures.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .database import get_session

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of one request."""
    id: str
    email: str
    name: str
    role: models.Role

    @property
    def is_tutor(self) -> bool:
        return self.role == models.Role.TUTOR

    @classmethod
    def from_user(cls, user: models.User) -> "Principal":
        return cls(id=user.id, email=user.email, name=user.name, role=user.role)


def hash_password(password: str) -> str:
    return PWD_CTX.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return PWD_CTX.verify(password, password_hash)


def create_access_token(user: models.User) -> str:
    """Sign a token carrying `user_id` and `role` that expires after `JWT_EXPIRE_HOURS`."""
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
    payload = {"user_id": user.id, "role": user.role.value, "exp": int(expire.timestamp())}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> Principal:
    """FastAPI dependency that returns the authenticated caller.

    The user row is re-read on every request so role changes and
    deleted accounts take effect without waiting for token expiry.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Access token required")
    payload = decode_token(credentials.credentials)
    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return Principal.from_user(user)


def require_tutor(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Dependency for exam-authoring routes."""
    if not principal.is_tutor:
        raise HTTPException(status_code=403, detail="Tutor account required")
    return principal
