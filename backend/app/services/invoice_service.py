"""Invoice creation, amendment and lookup.

Creation runs in three steps:
1. resolve each requested line against the catalog (snapshot name/rate/MRP/GST)
2. price the invoice (app.services.invoice_pricing)
3. number and insert atomically, retrying when another request took the number first
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.audit import Actor, AuditSink, record, record_for
from app.core.config import settings
from app.core.exceptions import InvoiceNumberConflict, NotFoundError
from app.core.retry import RetryExhausted, attempt, linear_backoff
from app.models.audit_log import AuditAction
from app.models.invoice import Invoice, InvoiceItem, InvoiceStatus
from app.models.product import Product
from app.schemas.invoice import InvoiceCreate, InvoiceItemIn, InvoiceUpdate
from app.services.invoice_numbering import next_invoice_number
from app.services.invoice_pricing import (
    ZERO,
    InvoiceTotals,
    LineInput,
    compute_totals,
    discount_mode_for,
    tax_mode_for,
    to_paise,
)

logger = logging.getLogger(__name__)

CUSTOM_ITEM_NAME = "Custom Item"
MAX_LIST_RESULTS = 1000

ProductLookup = Callable[[int], Optional[Product]]


class _NumberTaken(Exception):
    """The generated invoice number was inserted by a concurrent request."""


@dataclass
class ResolvedLine:
    product_id: Optional[int]
    batch_ref: Optional[str]
    product_name: str
    qty: int
    free_qty: int
    rate: Decimal
    mrp: Decimal
    gst_pct: Decimal
    discount_pct: Decimal

    def as_pricing_input(self) -> LineInput:
        return LineInput(qty=self.qty, rate=self.rate, gst_pct=self.gst_pct, discount_pct=self.discount_pct)


def catalog_lookup(db: Session) -> ProductLookup:
    return lambda product_id: db.get(Product, product_id)


def resolve_line(item: InvoiceItemIn, product: Optional[Product]) -> ResolvedLine:
    """
    Fill gaps in a requested line from the catalog.

    rate: explicit > catalog MRP > catalog selling price > 0
    gst:  explicit > catalog GST% > 0
    discount: explicit > 0
    A missing or unknown product leaves a custom line with no catalog link.
    """
    if item.unit_rate is not None:
        rate = item.unit_rate
    elif product is not None and product.mrp is not None:
        rate = Decimal(product.mrp)
    elif product is not None and product.selling_price is not None:
        rate = Decimal(product.selling_price)
    else:
        rate = ZERO

    if item.gst_pct is not None:
        gst_pct = item.gst_pct
    elif product is not None and product.gst_percent is not None:
        gst_pct = Decimal(product.gst_percent)
    else:
        gst_pct = ZERO

    if item.mrp is not None:
        mrp = item.mrp
    elif product is not None and product.mrp is not None:
        mrp = Decimal(product.mrp)
    else:
        mrp = rate

    name = item.product_name or (product.display_name if product is not None else None) or CUSTOM_ITEM_NAME

    return ResolvedLine(
        product_id=product.id if product is not None else None,
        batch_ref=item.batch,
        product_name=name,
        qty=item.qty,
        free_qty=item.free_qty,
        rate=rate,
        mrp=mrp,
        gst_pct=gst_pct,
        discount_pct=item.discount_pct if item.discount_pct is not None else ZERO,
    )


def price_draft(draft: InvoiceCreate, lines: List[ResolvedLine]) -> InvoiceTotals:
    return compute_totals(
        [line.as_pricing_input() for line in lines],
        discount_mode=discount_mode_for(draft.discount_total),
        tax_mode=tax_mode_for(draft.tax_total),
        is_inter_state=draft.is_inter_state,
        paid=draft.paid,
    )


def _build_invoice(
    draft: InvoiceCreate,
    lines: List[ResolvedLine],
    totals: InvoiceTotals,
    invoice_no: str,
    actor: Actor,
) -> Invoice:
    status = draft.status or (InvoiceStatus.PENDING if totals.balance > 0 else InvoiceStatus.PAID)
    invoice = Invoice(
        invoice_no=invoice_no,
        patient_name=draft.patient_name,
        patient_address=draft.patient_address,
        doctor_name=draft.doctor_name,
        customer_phone=draft.customer_phone,
        department=draft.department,
        mode=draft.mode,
        bill_type=draft.bill_type,
        gstin=draft.gstin,
        place_of_supply=draft.place_of_supply or "",
        is_inter_state=draft.is_inter_state,
        sub_total=to_paise(totals.sub_total),
        discount_total=to_paise(totals.discount_total),
        tax_total=to_paise(totals.tax_total),
        cgst=to_paise(totals.cgst),
        sgst=to_paise(totals.sgst),
        igst=to_paise(totals.igst),
        round_off=to_paise(totals.round_off),
        net_payable=totals.net_payable,
        paid=to_paise(totals.paid),
        balance=to_paise(totals.balance),
        status=status,
        notes=draft.notes,
        created_by=actor.id,
    )
    for position, (line, priced) in enumerate(zip(lines, totals.lines)):
        invoice.items.append(InvoiceItem(
            position=position,
            product_id=line.product_id,
            batch_ref=line.batch_ref,
            product_name=line.product_name,
            qty=line.qty,
            free_qty=line.free_qty,
            unit_rate=line.rate,
            mrp=line.mrp,
            discount_pct=line.discount_pct,
            gst_pct=line.gst_pct,
            amount=to_paise(priced.taxable),
        ))
    return invoice


def _is_invoice_no_violation(error: IntegrityError) -> bool:
    return "invoice_no" in str(error.orig).lower()


def create_invoice(
    db: Session,
    draft: InvoiceCreate,
    actor: Actor,
    audit: AuditSink = record,
    lookup: Optional[ProductLookup] = None,
    now: Optional[datetime] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Invoice:
    """
    Price, number and persist an invoice, then emit INVOICE_CREATED.

    Raises:
        ValidationError: pricing rejected the input (negative base, bad amounts)
        InvoiceNumberConflict: numbering collided on every allowed attempt
    """
    lookup = lookup or catalog_lookup(db)
    lines = [
        resolve_line(item, lookup(item.product_id) if item.product_id is not None else None)
        for item in draft.items
    ]
    totals = price_draft(draft, lines)

    def _number_and_insert() -> Invoice:
        invoice_no = next_invoice_number(db, now)
        invoice = _build_invoice(draft, lines, totals, invoice_no, actor)
        db.add(invoice)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if _is_invoice_no_violation(e):
                raise _NumberTaken(invoice_no) from e
            raise
        return invoice

    def _on_retry(failures: int, error: BaseException) -> None:
        logger.warning(f"[Invoice] Sequence collision on {error}, retrying ({failures} failed so far)")

    try:
        invoice = attempt(
            _number_and_insert,
            max_attempts=settings.INVOICE_NUMBER_MAX_ATTEMPTS,
            backoff=linear_backoff(0.05),
            retry_on=(_NumberTaken,),
            on_retry=_on_retry,
            sleep=sleep,
        )
    except RetryExhausted as e:
        logger.error(f"[Invoice] Numbering failed after {e.attempts} attempts for {actor.email}")
        raise InvoiceNumberConflict(e.attempts, e.last_error) from e

    db.refresh(invoice)
    logger.info(f"[Invoice] Created {invoice.invoice_no} by {actor.email} (net {invoice.net_payable})")

    record_for(actor, AuditAction.INVOICE_CREATED, "Invoice", invoice.id, details={
        "invoiceNo": invoice.invoice_no,
        "patientName": invoice.patient_name,
        "amount": str(invoice.net_payable),
        "mode": invoice.mode,
    }, sink=audit)
    return invoice


def get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = (
        db.query(Invoice)
        .options(selectinload(Invoice.items))
        .filter(Invoice.id == invoice_id)
        .first()
    )
    if not invoice:
        raise NotFoundError("Invoice", invoice_id)
    return invoice


def get_invoice_by_number(db: Session, invoice_no: str) -> Invoice:
    invoice = (
        db.query(Invoice)
        .options(selectinload(Invoice.items))
        .filter(Invoice.invoice_no == invoice_no)
        .first()
    )
    if not invoice:
        raise NotFoundError("Invoice", invoice_no)
    return invoice


def list_invoices(
    db: Session,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = MAX_LIST_RESULTS,
) -> List[Invoice]:
    """Newest first. search matches invoice number, patient name or phone."""
    q = db.query(Invoice).options(selectinload(Invoice.items))
    if start_date:
        q = q.filter(Invoice.created_at >= start_date)
    if end_date:
        q = q.filter(Invoice.created_at <= end_date)
    if status:
        q = q.filter(Invoice.status == status)
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(
            Invoice.invoice_no.ilike(pattern),
            Invoice.patient_name.ilike(pattern),
            Invoice.customer_phone.ilike(pattern),
        ))
    return q.order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(min(limit, MAX_LIST_RESULTS)).all()


def update_invoice(
    db: Session,
    invoice_id: int,
    changes: InvoiceUpdate,
    actor: Actor,
    audit: AuditSink = record,
) -> Invoice:
    """Apply status/notes changes and emit INVOICE_UPDATED with the field diff."""
    invoice = get_invoice(db, invoice_id)

    diff = {}
    for field, value in changes.model_dump(exclude_unset=True).items():
        if field == "status" and value is None:
            continue
        old = getattr(invoice, field)
        if old != value:
            diff[field] = {"from": old, "to": value}
            setattr(invoice, field, value)

    db.commit()
    db.refresh(invoice)
    logger.info(f"[Invoice] Updated {invoice.invoice_no}: {sorted(diff)}")

    record_for(actor, AuditAction.INVOICE_UPDATED, "Invoice", invoice.id, details={
        "invoiceNo": invoice.invoice_no,
        "changes": diff,
    }, sink=audit)
    return invoice


def delete_invoice(db: Session, invoice_id: int, actor: Actor, audit: AuditSink = record) -> str:
    invoice = get_invoice(db, invoice_id)
    invoice_no = invoice.invoice_no
    db.delete(invoice)
    db.commit()
    logger.info(f"[Invoice] Deleted {invoice_no} by {actor.email}")

    record_for(actor, AuditAction.INVOICE_DELETED, "Invoice", invoice_id, details={
        "invoiceNo": invoice_no,
    }, sink=audit)
    return invoice_no
