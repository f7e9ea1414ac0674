"""Product master and cached stock.

Every write path that can change `stock` or `min_stock` takes an
`on_stock_change` hook and calls it with the product id after commit; the
API wires it to the stock monitor's reset capability.
"""
import logging
from typing import Callable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.core.audit import Actor, AuditSink, record, record_for
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.db.session import SessionLocal
from app.models.audit_log import AuditAction
from app.models.product import Product
from app.schemas.product import ProductCreate, ProductUpdate
from app.services.stock_monitor import StockSnapshot

logger = logging.getLogger(__name__)

StockChangeHook = Callable[[int], None]


def get_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product", product_id)
    return product


def list_products(
    db: Session,
    search: Optional[str] = None,
    schedule: Optional[str] = None,
    low_stock: bool = False,
) -> List[Product]:
    q = db.query(Product).filter(Product.is_active.is_(True))
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(
            Product.name.ilike(pattern),
            Product.brand.ilike(pattern),
            Product.generic.ilike(pattern),
            Product.sku.ilike(pattern),
        ))
    if schedule:
        q = q.filter(Product.schedule == schedule.upper())
    if low_stock:
        q = q.filter(Product.stock <= Product.min_stock)
    return q.order_by(Product.brand).all()


def list_low_stock(db: Session) -> List[Product]:
    """Active products at or below their reorder threshold, emptiest first."""
    return (
        db.query(Product)
        .options(joinedload(Product.supplier))
        .filter(Product.is_active.is_(True), Product.stock <= Product.min_stock)
        .order_by(Product.stock.asc(), Product.id.asc())
        .all()
    )


def to_snapshot(product: Product) -> StockSnapshot:
    supplier = product.supplier
    return StockSnapshot(
        product_id=product.id,
        name=product.display_name,
        sku=product.sku,
        stock=product.stock or 0,
        min_stock=product.min_stock or 0,
        unit=product.unit or "units",
        category=product.schedule or "",
        supplier_name=supplier.name if supplier else None,
        supplier_phone=supplier.phone if supplier else None,
    )


def low_stock_snapshots() -> List[StockSnapshot]:
    """Blocking read used by the stock monitor; opens its own session."""
    db = SessionLocal()
    try:
        return [to_snapshot(p) for p in list_low_stock(db)]
    finally:
        db.close()


def create_product(db: Session, data: ProductCreate, actor: Actor, audit: AuditSink = record) -> Product:
    if db.query(Product).filter(Product.sku == data.sku).first():
        raise ConflictError(f"SKU '{data.sku}' already exists")

    product = Product(**data.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info(f"[Inventory] Product created: {product.brand} ({product.sku})")

    record_for(actor, AuditAction.PRODUCT_CREATED, "Product", product.id,
               details={"sku": product.sku, "brand": product.brand}, sink=audit)
    return product


def update_product(
    db: Session,
    product_id: int,
    data: ProductUpdate,
    actor: Actor,
    on_stock_change: StockChangeHook,
    audit: AuditSink = record,
) -> Product:
    product = get_product(db, product_id)
    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    logger.info(f"[Inventory] Product updated: {product.brand} {sorted(changes)}")

    # stock/min_stock may have changed
    on_stock_change(product.id)

    record_for(actor, AuditAction.PRODUCT_UPDATED, "Product", product.id,
               details={"sku": product.sku, "changes": changes}, sink=audit)
    return product


def deactivate_product(db: Session, product_id: int, actor: Actor, audit: AuditSink = record) -> Product:
    """Soft delete: the product stays referenced by past invoices."""
    product = get_product(db, product_id)
    product.is_active = False
    db.commit()
    logger.info(f"[Inventory] Product soft deleted: {product.brand} ({product.sku})")

    record_for(actor, AuditAction.PRODUCT_DELETED, "Product", product.id,
               details={"sku": product.sku}, sink=audit)
    return product


def adjust_stock(
    db: Session,
    product_id: int,
    quantity: int,
    operation: str,
    on_stock_change: StockChangeHook,
) -> Product:
    """
    Manual stock correction on the cached quantity.

    Raises:
        ValidationError: subtracting more than is in stock, or unknown operation
    """
    product = get_product(db, product_id)
    if operation == "add":
        product.stock = (product.stock or 0) + quantity
    elif operation == "subtract":
        if (product.stock or 0) < quantity:
            raise ValidationError("Insufficient stock")
        product.stock = product.stock - quantity
    else:
        raise ValidationError(f"Unknown stock operation: {operation}")

    db.commit()
    db.refresh(product)
    logger.info(
        f"[Inventory] Stock manually updated for {product.brand}: {operation} {quantity}, "
        f"new stock: {product.stock}"
    )

    on_stock_change(product.id)
    return product
