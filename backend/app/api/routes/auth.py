"""Auth: login, current principal, admin-managed user creation.

Login outcomes are audited. Failed logins get the same response whether
the email is unknown or the password is wrong.
"""
import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_audit_sink, get_current_user, get_db, require_roles
from app.core.audit import Actor, AuditSink, record, record_for
from app.core.exceptions import BusinessError
from app.core.permissions import USER_ADMINS
from app.core.security import create_access_token, get_password_hash, verify_password
from app.models.audit_log import AuditAction
from app.models.user import User
from app.schemas.user import Token, UserCreate, UserLogin, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _request_actor(request: Request, user_id, name, email) -> Actor:
    return Actor(
        id=user_id,
        name=name,
        email=email,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/login", response_model=Token)
def login(
    data: UserLogin,
    request: Request,
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
):
    user = db.query(User).filter(User.email == data.email).first()
    if not user or not user.is_active or not verify_password(data.password, user.hashed_password):
        reason = "unknown email" if not user else ("inactive account" if not user.is_active else "bad password")
        actor = _request_actor(request, user.id if user else None, user.name if user else None, data.email)
        # error responses drop background tasks
        record_for(actor, AuditAction.LOGIN_FAILED, "User", actor.id, details={"reason": reason}, sink=record)
        raise BusinessError.unauthorized(f"login failed for {data.email}: {reason}")

    token = create_access_token(subject=str(user.id))
    logger.info(f"[Auth] User logged in: {user.email}")
    record_for(_request_actor(request, user.id, user.name, user.email),
               AuditAction.LOGIN_SUCCESS, "User", user.id, sink=audit)
    return Token(access_token=token, user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user."""
    return current_user


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*USER_ADMINS)),
    actor: Actor = Depends(get_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Accounts are provisioned by an admin; there is no self-registration."""
    if db.query(User).filter(User.email == data.email).first():
        raise BusinessError.conflict("User already exists")

    user = User(
        name=data.name,
        email=data.email,
        hashed_password=get_password_hash(data.password),
        role=data.role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"[Auth] New user registered: {user.email} with role {user.role}")

    record_for(actor, AuditAction.USER_CREATED, "User", user.id,
               details={"email": user.email, "role": user.role}, sink=audit)
    return user
