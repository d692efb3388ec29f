import logging
import os

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas
from ..auth import (
    PrincipalContext,
    get_current_principal,
    get_password_hash,
    principal_for_user,
    token_for_user,
    verify_password,
)
from ..errors import AuthenticationError, ValidationError
from ..eventlog import EventType, ObjectType, record_event_safely
from . import dump, ok

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
testing = os.getenv("TESTING") == "1"


def rate_limit(limit: str):
    if testing:
        def wrapper(func):
            return func
        return wrapper
    return limiter.limit(limit)


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register")
@rate_limit("5/minute")
async def register(request: Request, user: schemas.UserCreate, db: Session = Depends(get_db)):
    email = user.email.lower()
    existing = db.query(models.User).filter(models.User.email == email).first()
    if existing:
        raise ValidationError("Email already registered")
    db_user = models.User(
        email=email,
        hashed_password=get_password_hash(user.password),
        display_name=(user.display_name or "").strip() or None,
        role=user.role,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info("registered user %s with role %s", db_user.id, db_user.role)
    if db_user.role == models.UserRole.DESIGNER.value:
        ctx = principal_for_user(
            db_user,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
        record_event_safely(
            db,
            ctx,
            EventType.DESIGNER_PROFILE_CREATED,
            ObjectType.DESIGNER_PROFILE,
            object_id=db_user.id,
            payload={"display_name": db_user.display_name},
        )
    return ok(
        "Account created.",
        access_token=token_for_user(db_user),
        token_type="bearer",
        user=dump(schemas.UserOut, db_user),
    )


@router.post("/login")
@rate_limit("10/minute")
async def login(request: Request, user: schemas.LoginRequest, db: Session = Depends(get_db)):
    db_user = db.query(models.User).filter(models.User.email == user.email.lower()).first()
    if not db_user or not verify_password(user.password, db_user.hashed_password):
        raise AuthenticationError("Invalid credentials")
    if not db_user.is_active:
        raise AuthenticationError("Account is disabled")
    return ok(access_token=token_for_user(db_user), token_type="bearer")


@router.get("/me")
async def me(
    ctx: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return ok(user=dump(schemas.UserOut, db.get(models.User, ctx.user_id)))
