from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


DOSAGE_FORMS = ("TAB", "CAP", "SYR", "INJ", "CRM", "ONT", "DRP", "PWD")
SCHEDULES = ("H", "H1", "X", "OTC")
GST_SLABS = (0, 5, 12, 18, 28)


class Product(Base):
    """
    Drug master record.

    `stock` is a cached aggregate of batch quantities. Any code path that
    changes `stock` or `min_stock` must reset the stock monitor's alert
    state for this product (see inventory_service).
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    brand = Column(String(255), nullable=False, index=True)
    generic = Column(String(255), nullable=False, index=True)
    form = Column(String(8), nullable=False)
    strength = Column(String(64), nullable=False)
    schedule = Column(String(8), nullable=False, default="OTC")
    gst_percent = Column(Numeric(5, 2), nullable=False, default=12)
    hsn_code = Column(String(32), nullable=True)
    mrp = Column(Numeric(12, 2), nullable=False)
    selling_price = Column(Numeric(12, 2), nullable=True)
    unit = Column(String(32), nullable=False, default="units")
    stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=10)
    is_active = Column(Boolean, default=True, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    supplier = relationship("Supplier", backref="products")

    @property
    def display_name(self) -> str:
        return self.name or f"{self.brand} {self.strength} {self.form}"

    @property
    def is_low_stock(self) -> bool:
        return (self.stock or 0) <= (self.min_stock or 0)
