"""Principal/session service: bearer tokens and the request principal."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import models
from .database import get_db
from .errors import AuthenticationError

# purpose: resolve the authenticated principal independently of request parameters
# inputs: Authorization bearer header, users table
# outputs: PrincipalContext passed explicitly into resolver and ledger calls
# status: active

SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class PrincipalContext:
    """The acting identity for one request."""

    user_id: int
    is_admin: bool = False
    role: str = models.UserRole.DESIGNER.value
    ip_address: str | None = None
    user_agent: str | None = None

    @property
    def is_operator(self) -> bool:
        return self.is_admin or self.role == models.UserRole.OPERATOR.value

    @property
    def is_supplier(self) -> bool:
        return self.role == models.UserRole.SUPPLIER.value


def principal_for_user(
    user: models.User,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> PrincipalContext:
    return PrincipalContext(
        user_id=user.id,
        is_admin=bool(user.is_admin),
        role=user.role or models.UserRole.DESIGNER.value,
        ip_address=ip_address,
        user_agent=user_agent,
    )


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    to_encode = dict(data)
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def token_for_user(user: models.User) -> str:
    return create_access_token({"sub": str(user.id)})


def is_platform_admin(db: Session, user_id: int | None) -> bool:
    if not user_id:
        return False
    flag = db.query(models.User.is_admin).filter(models.User.id == user_id).scalar()
    return bool(flag)


def _decode_subject(token: str) -> int:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise AuthenticationError("Could not validate credentials") from exc
    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise AuthenticationError("Could not validate credentials") from exc


def get_current_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> PrincipalContext:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()
    user_id = _decode_subject(credentials.credentials)
    user = db.get(models.User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Could not validate credentials")
    client_host = request.client.host if request.client else None
    return principal_for_user(
        user,
        ip_address=client_host,
        user_agent=request.headers.get("user-agent"),
    )
