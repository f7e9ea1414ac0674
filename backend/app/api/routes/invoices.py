"""Invoices: create (priced, numbered, audited), read, amend, delete, PDF."""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_audit_sink, get_current_user, get_db, require_roles
from app.core.audit import Actor, AuditSink
from app.core.exceptions import BillingError, BusinessError
from app.core.permissions import INVOICE_ADMINS, INVOICE_CREATORS
from app.models.user import User
from app.schemas.invoice import InvoiceCreate, InvoiceOut, InvoiceStatusLiteral, InvoiceUpdate
from app.services import invoice_service
from app.services.pdf_service import generate_invoice_pdf

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice(
    data: InvoiceCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*INVOICE_CREATORS)),
    actor: Actor = Depends(get_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    """
    Create an invoice.

    Lines without an explicit rate or GST% take them from the catalog.
    `discount_total` switches to global discount mode, `tax_total` to manual tax.
    """
    try:
        return invoice_service.create_invoice(db, data, actor, audit=audit)
    except BillingError as e:
        raise BusinessError.from_domain(e)


@router.get("", response_model=List[InvoiceOut])
def list_invoices(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    status: Optional[InvoiceStatusLiteral] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(invoice_service.MAX_LIST_RESULTS, ge=1, le=invoice_service.MAX_LIST_RESULTS),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Newest first; search matches invoice number, patient name or phone."""
    return invoice_service.list_invoices(db, start_date, end_date, status, search, limit)


@router.get("/search/{invoice_no:path}", response_model=InvoiceOut)
def get_invoice_by_number(
    invoice_no: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return invoice_service.get_invoice_by_number(db, invoice_no)
    except BillingError as e:
        raise BusinessError.from_domain(e)


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return invoice_service.get_invoice(db, invoice_id)
    except BillingError as e:
        raise BusinessError.from_domain(e)


@router.get("/{invoice_id}/pdf")
def download_invoice_pdf(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        invoice = invoice_service.get_invoice(db, invoice_id)
    except BillingError as e:
        raise BusinessError.from_domain(e)

    buffer = generate_invoice_pdf(invoice)
    filename = invoice.invoice_no.replace("/", "-")
    return StreamingResponse(
        buffer,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="invoice-{filename}.pdf"'},
    )


@router.put("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*INVOICE_ADMINS)),
    actor: Actor = Depends(get_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Only status and notes can change once an invoice exists."""
    try:
        return invoice_service.update_invoice(db, invoice_id, data, actor, audit=audit)
    except BillingError as e:
        raise BusinessError.from_domain(e)


@router.delete("/{invoice_id}")
def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*INVOICE_ADMINS)),
    actor: Actor = Depends(get_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    try:
        invoice_no = invoice_service.delete_invoice(db, invoice_id, actor, audit=audit)
    except BillingError as e:
        raise BusinessError.from_domain(e)
    return {"message": f"Invoice {invoice_no} deleted", "invoice_no": invoice_no}
