"""Audit log query (admin only)."""
import math
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.core.permissions import AUDIT_READERS
from app.models.audit_log import AuditLog
from app.models.user import User
from app.schemas.audit import AuditActionCount, AuditLogOut, AuditLogPage

router = APIRouter()


@router.get("", response_model=AuditLogPage)
def list_audit_logs(
    action: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None),
    resource_type: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*AUDIT_READERS)),
):
    """Newest first, paginated."""
    q = db.query(AuditLog)
    if action:
        q = q.filter(AuditLog.action == action)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)
    if resource_type:
        q = q.filter(AuditLog.resource_type == resource_type)
    if start_date:
        q = q.filter(AuditLog.created_at >= start_date)
    if end_date:
        q = q.filter(AuditLog.created_at <= end_date)

    total = q.count()
    rows = (
        q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return AuditLogPage(
        data=[AuditLogOut.model_validate(r) for r in rows],
        total=total,
        total_pages=math.ceil(total / limit),
        current_page=page,
    )


@router.get("/stats", response_model=List[AuditActionCount])
def audit_stats(
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*AUDIT_READERS)),
):
    """Event counts per action over the last `days` days, most frequent first."""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    count = func.count(AuditLog.id)
    rows = (
        db.query(AuditLog.action, count)
        .filter(AuditLog.created_at >= since)
        .group_by(AuditLog.action)
        .order_by(count.desc())
        .all()
    )
    return [AuditActionCount(action=action, count=n) for action, n in rows]
