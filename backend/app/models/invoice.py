from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime, Boolean, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class PaymentMode:
    CASH = "CASH"
    CARD = "CARD"
    UPI = "UPI"
    CREDIT = "CREDIT"

    ALL = (CASH, CARD, UPI, CREDIT)


class InvoiceStatus:
    PAID = "PAID"
    PENDING = "PENDING"
    RETURN = "RETURN"  # credit note

    ALL = (PAID, PENDING, RETURN)


class Invoice(Base):
    """
    Sale invoice.

    Monetary fields and items are written once at creation; afterwards only
    `status` and `notes` change.
    """
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_no = Column(String(32), unique=True, nullable=False, index=True)

    patient_name = Column(String(255), nullable=False, index=True)
    patient_address = Column(String(512), nullable=True)
    doctor_name = Column(String(255), nullable=True)
    customer_phone = Column(String(64), nullable=True)
    department = Column(String(128), nullable=True)

    mode = Column(String(16), nullable=False, default=PaymentMode.CASH)
    bill_type = Column(String(32), nullable=False, default="TAX_INVOICE")

    # GST compliance
    gstin = Column(String(15), nullable=True)
    place_of_supply = Column(String(128), nullable=True)
    is_inter_state = Column(Boolean, nullable=False, default=False)

    # Amounts
    sub_total = Column(Numeric(12, 2), nullable=False)
    discount_total = Column(Numeric(12, 2), nullable=False, default=0)
    tax_total = Column(Numeric(12, 2), nullable=False, default=0)
    cgst = Column(Numeric(12, 2), nullable=False, default=0)
    sgst = Column(Numeric(12, 2), nullable=False, default=0)
    igst = Column(Numeric(12, 2), nullable=False, default=0)
    round_off = Column(Numeric(6, 2), nullable=False, default=0)
    net_payable = Column(Numeric(12, 2), nullable=False)
    paid = Column(Numeric(12, 2), nullable=False)
    balance = Column(Numeric(12, 2), nullable=False, default=0)

    status = Column(String(16), nullable=False, default=InvoiceStatus.PAID)
    notes = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    creator = relationship("User")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )


class InvoiceItem(Base):
    """Line item. Name, rate and MRP are snapshots taken at sale time."""
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    batch_ref = Column(String(64), nullable=True)
    product_name = Column(String(255), nullable=False)
    qty = Column(Integer, nullable=False)
    free_qty = Column(Integer, nullable=False, default=0)
    unit_rate = Column(Numeric(12, 2), nullable=False)
    mrp = Column(Numeric(12, 2), nullable=True)
    discount_pct = Column(Numeric(5, 2), nullable=False, default=0)
    gst_pct = Column(Numeric(5, 2), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)  # taxable amount

    invoice = relationship("Invoice", back_populates="items")
    product = relationship("Product")
