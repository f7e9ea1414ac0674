"""Concurrent creation on the same day must never hand out a number twice."""
import threading
from datetime import datetime

from app.core.audit import Actor
from app.db.session import SessionLocal
from app.models.invoice import Invoice
from app.schemas.invoice import InvoiceCreate
from app.services import invoice_service
from app.services.invoice_numbering import parse_sequence

MARCH_19 = datetime(2026, 3, 19, 10, 30)
# Each round every worker creates one invoice at once. A worker can only lose
# the race to the others in its round, so WORKERS - 1 retries always suffice.
WORKERS = 5
ROUNDS = 4


def test_concurrent_creation_yields_unique_increasing_numbers(admin):
    actor = Actor(id=admin.id, name=admin.name, email=admin.email)
    barrier = threading.Barrier(WORKERS, timeout=60)
    errors = []

    def worker(index: int):
        db = SessionLocal()
        try:
            for n in range(ROUNDS):
                barrier.wait()
                draft = InvoiceCreate(
                    patient_name=f"Patient {index}-{n}",
                    items=[{"product_name": "Bandage", "qty": 1, "unit_rate": "50"}],
                )
                invoice_service.create_invoice(db, draft, actor, audit=lambda *a, **k: None, now=MARCH_19)
        except Exception as e:
            errors.append(e)
            barrier.abort()
        finally:
            db.close()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(WORKERS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=120)

    assert errors == []

    db = SessionLocal()
    try:
        numbers = [no for (no,) in db.query(Invoice.invoice_no).order_by(Invoice.id).all()]
    finally:
        db.close()

    assert len(numbers) == WORKERS * ROUNDS
    assert len(set(numbers)) == len(numbers)

    # insertion order follows the sequence, with no gaps
    sequences = [parse_sequence(no, "INV/26/19") for no in numbers]
    assert sequences == list(range(1, len(numbers) + 1))
