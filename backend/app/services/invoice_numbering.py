"""Human-readable invoice numbers: PREFIX/YY/DD####.

The sequence continues from the highest existing number under the same
prefix. Two concurrent requests can compute the same next number; the
unique index on invoices.invoice_no rejects the second insert and the
invoice service retries with a fresh read.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.invoice import Invoice

SEQUENCE_WIDTH = 4


def invoice_prefix(now: datetime, literal: Optional[str] = None) -> str:
    """INV/26/19 for any invoice raised on the 19th of a month in 2026."""
    return f"{literal or settings.INVOICE_PREFIX}/{now:%y}/{now:%d}"


def format_invoice_number(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence(invoice_no: str, prefix: str) -> Optional[int]:
    """Numeric suffix after the prefix, or None if the number does not belong to it."""
    if not invoice_no or not invoice_no.startswith(prefix):
        return None
    suffix = invoice_no[len(prefix):]
    if not suffix.isdigit():
        return None
    return int(suffix)


def last_invoice_number(db: Session, prefix: str) -> Optional[str]:
    # Longer suffixes sort first so that 10000 beats 9999
    row = (
        db.query(Invoice.invoice_no)
        .filter(Invoice.invoice_no.startswith(prefix, autoescape=True))
        .order_by(func.length(Invoice.invoice_no).desc(), Invoice.invoice_no.desc())
        .first()
    )
    return row[0] if row else None


def next_invoice_number(db: Session, now: Optional[datetime] = None) -> str:
    """Read the latest number for today's prefix and return the one after it."""
    prefix = invoice_prefix(now or datetime.now())
    last = last_invoice_number(db, prefix)
    sequence = parse_sequence(last, prefix) if last else None
    return format_invoice_number(prefix, (sequence or 0) + 1)
