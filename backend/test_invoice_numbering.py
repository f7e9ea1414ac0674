from datetime import datetime
from decimal import Decimal

from app.models.invoice import Invoice
from app.services.invoice_numbering import (
    format_invoice_number,
    invoice_prefix,
    last_invoice_number,
    next_invoice_number,
    parse_sequence,
)

MARCH_19 = datetime(2026, 3, 19, 10, 30)


def _invoice(invoice_no: str, user_id: int) -> Invoice:
    return Invoice(
        invoice_no=invoice_no,
        patient_name="Walk-in",
        sub_total=Decimal("0"),
        net_payable=Decimal("0"),
        paid=Decimal("0"),
        created_by=user_id,
    )


def test_prefix_format():
    assert invoice_prefix(MARCH_19) == "INV/26/19"
    assert invoice_prefix(datetime(2027, 1, 5), literal="HSP") == "HSP/27/05"


def test_format_and_parse():
    assert format_invoice_number("INV/26/19", 7) == "INV/26/190007"
    assert parse_sequence("INV/26/190007", "INV/26/19") == 7
    assert parse_sequence("INV/26/1910000", "INV/26/19") == 10000
    assert parse_sequence("INV/26/200007", "INV/26/19") is None
    assert parse_sequence("INV/26/19ABCD", "INV/26/19") is None


def test_first_number_of_the_day_starts_at_one(db):
    assert next_invoice_number(db, MARCH_19) == "INV/26/190001"


def test_next_number_increments_from_latest(db, admin):
    db.add_all([_invoice("INV/26/190001", admin.id), _invoice("INV/26/190002", admin.id)])
    db.commit()

    assert next_invoice_number(db, MARCH_19) == "INV/26/190003"


def test_other_days_do_not_affect_sequence(db, admin):
    db.add_all([_invoice("INV/26/180041", admin.id), _invoice("INV/26/200099", admin.id)])
    db.commit()

    assert next_invoice_number(db, MARCH_19) == "INV/26/190001"


def test_same_day_of_month_in_another_month_continues_sequence(db, admin):
    # Feb 19 and Mar 19 share a prefix; the sequence continues instead of colliding
    db.add(_invoice("INV/26/190012", admin.id))
    db.commit()

    assert next_invoice_number(db, MARCH_19) == "INV/26/190013"


def test_sequence_past_four_digits_keeps_increasing(db, admin):
    db.add_all([_invoice("INV/26/199999", admin.id), _invoice("INV/26/1910000", admin.id)])
    db.commit()

    assert last_invoice_number(db, "INV/26/19") == "INV/26/1910000"
    assert next_invoice_number(db, MARCH_19) == "INV/26/1910001"
