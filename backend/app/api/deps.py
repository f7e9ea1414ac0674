"""FastAPI dependencies: DB session, current user from JWT, role guards,
request actor, audit sink and the stock-change hook.
"""
from typing import Callable, Generator, Optional

from fastapi import BackgroundTasks, Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.core.audit import Actor, AuditSink, BackgroundAudit, log_access_denied
from app.core.exceptions import BusinessError
from app.core.permissions import user_has_role
from app.core.security import decode_access_token
from app.models.user import User
from app.services.stock_scheduler import get_stock_monitor

security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> int:
    """Extract user ID from the bearer token."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    sub = decode_access_token(credentials.credentials)
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return int(sub)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def get_current_user(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
) -> User:
    """Load current user from DB. Deactivated accounts are rejected."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is deactivated")
    return user


def require_roles(*roles: str) -> Callable[..., User]:
    """
    Dependency factory admitting only the given roles.

    Usage:
        @router.delete("/{id}")
        def remove(user: User = Depends(require_roles("admin"))): ...
    """
    def _guard(request: Request, user: User = Depends(get_current_user)) -> User:
        if not user_has_role(user, roles):
            log_access_denied(
                action=f"{request.method} {request.url.path}",
                resource_type=request.url.path.strip("/").split("/")[0] or "root",
                user_id=user.id,
                role=user.role,
                reason=f"requires one of {', '.join(roles)}",
            )
            raise BusinessError.forbidden(f"User {user.email} with role '{user.role}' denied {request.url.path}")
        return user

    return _guard


def get_actor(request: Request, user: User = Depends(get_current_user)) -> Actor:
    """The authenticated principal plus request provenance for audit records."""
    return Actor(
        id=user.id,
        name=user.name or user.email,
        email=user.email,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_audit_sink(background_tasks: BackgroundTasks) -> AuditSink:
    """Audit records are written after the response goes out."""
    return BackgroundAudit(background_tasks)


def get_stock_change_hook() -> Callable[[int], None]:
    """Resets the stock monitor's alert state for a product."""
    return get_stock_monitor().reset_product_notification
