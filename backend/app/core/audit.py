"""
Audit trail for billing and inventory operations.

Every record is written twice: as a JSON line on the "audit" logger (can be
shipped to centralized logging) and as an AuditLog row for the query API.

Recording is fire-and-forget: failures are logged and swallowed so that an
unavailable audit store never fails or rolls back the business operation
that produced the event.
"""
import logging
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import BackgroundTasks

from app.db.session import SessionLocal
from app.models.audit_log import AuditLog

# Separate logger for audit events
audit_logger = logging.getLogger("audit")
logger = logging.getLogger(__name__)


@dataclass
class Actor:
    """The principal performing an operation, plus request provenance."""
    id: int
    name: str
    email: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


AuditSink = Callable[..., None]


def record(
    action: str,
    actor_id: Optional[int],
    actor_name: Optional[str],
    actor_email: Optional[str],
    resource_type: Optional[str],
    resource_id: Optional[int],
    details: Optional[Dict[str, Any]] = None,
    source_ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> None:
    """
    Persist one audit event. Never raises.

    Usage:
        record("INVOICE_CREATED", 1, "Admin", "admin@example.com", "Invoice", 42,
               details={"invoiceNo": "INV/26/190001", "amount": "224"})
    """
    log_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": action,
        "user_id": actor_id,
        "user_email": actor_email,
        "resource_type": resource_type,
        "resource_id": resource_id,
        "ip_address": source_ip,
    }
    if details:
        log_entry["details"] = details
    audit_logger.info(json.dumps(log_entry, default=str))

    db = SessionLocal()
    try:
        db.add(AuditLog(
            action=action,
            user_id=actor_id,
            user_name=actor_name,
            user_email=actor_email,
            resource_type=resource_type,
            resource_id=resource_id,
            details=json.loads(json.dumps(details or {}, default=str)),
            ip_address=source_ip,
            user_agent=user_agent,
        ))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"[Audit] Failed to persist {action} for {resource_type}#{resource_id}: {e}")
    finally:
        db.close()


def record_for(actor: Actor, action: str, resource_type: str, resource_id: Optional[int],
               details: Optional[Dict[str, Any]] = None, sink: AuditSink = record) -> None:
    """Call an audit sink with the actor fields spread into the sink signature."""
    try:
        sink(
            action,
            actor.id,
            actor.name,
            actor.email,
            resource_type,
            resource_id,
            details,
            actor.ip_address,
            actor.user_agent,
        )
    except Exception as e:
        logger.error(f"[Audit] Failed to dispatch {action}: {e}")


class BackgroundAudit:
    """
    Audit sink that defers `record` until after the response is sent.

    Starlette runs background tasks once the response has gone out, so the
    caller never waits on the audit store.
    """

    def __init__(self, background_tasks: BackgroundTasks):
        self.background_tasks = background_tasks

    def __call__(self, *args, **kwargs) -> None:
        self.background_tasks.add_task(record, *args, **kwargs)


def log_access_denied(action: str, resource_type: str, user_id: int, role: str, reason: str):
    """
    Log denied access attempts. Not persisted; audit log stream only.

    Usage:
        log_access_denied("delete", "invoice", 7, "staff", "requires admin")
    """
    log_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_severity": "WARNING",
        "event_type": "access_denied",
        "action": action,
        "resource_type": resource_type,
        "user_id": user_id,
        "role": role,
        "reason": reason,
    }

    audit_logger.warning(json.dumps(log_entry))
