"""Products: catalog CRUD, manual stock adjustment, low-stock listing.

Writes that touch stock or the reorder threshold reset the stock monitor's
alert state for the product.
"""
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import (
    get_actor,
    get_audit_sink,
    get_current_user,
    get_db,
    get_stock_change_hook,
    require_roles,
)
from app.core.audit import Actor, AuditSink
from app.core.exceptions import BillingError, BusinessError
from app.core.permissions import PRODUCT_EDITORS, PRODUCT_REMOVERS
from app.models.user import User
from app.schemas.product import ProductCreate, ProductOut, ProductUpdate, StockAdjustment
from app.services import inventory_service

router = APIRouter()


@router.get("", response_model=List[ProductOut])
def list_products(
    search: Optional[str] = Query(None),
    schedule: Optional[str] = Query(None),
    low_stock: bool = Query(False, alias="lowStock"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return inventory_service.list_products(db, search, schedule, low_stock)


@router.get("/alerts/low-stock", response_model=List[ProductOut])
def list_low_stock(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Active products at or below their reorder threshold, lowest stock first."""
    return inventory_service.list_low_stock(db)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    try:
        return inventory_service.get_product(db, product_id)
    except BillingError as e:
        raise BusinessError.from_domain(e)


@router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    data: ProductCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*PRODUCT_EDITORS)),
    actor: Actor = Depends(get_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    try:
        return inventory_service.create_product(db, data, actor, audit=audit)
    except BillingError as e:
        raise BusinessError.from_domain(e)


@router.put("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: int,
    data: ProductUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*PRODUCT_EDITORS)),
    actor: Actor = Depends(get_actor),
    audit: AuditSink = Depends(get_audit_sink),
    on_stock_change: Callable[[int], None] = Depends(get_stock_change_hook),
):
    try:
        return inventory_service.update_product(db, product_id, data, actor, on_stock_change, audit=audit)
    except BillingError as e:
        raise BusinessError.from_domain(e)


@router.patch("/{product_id}/stock", response_model=ProductOut)
def adjust_stock(
    product_id: int,
    data: StockAdjustment,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*PRODUCT_EDITORS)),
    on_stock_change: Callable[[int], None] = Depends(get_stock_change_hook),
):
    """Manual correction: `add` or `subtract` a positive quantity."""
    try:
        return inventory_service.adjust_stock(db, product_id, data.quantity, data.operation, on_stock_change)
    except BillingError as e:
        raise BusinessError.from_domain(e)


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*PRODUCT_REMOVERS)),
    actor: Actor = Depends(get_actor),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Soft delete; past invoices keep their reference."""
    try:
        product = inventory_service.deactivate_product(db, product_id, actor, audit=audit)
    except BillingError as e:
        raise BusinessError.from_domain(e)
    return {"message": "Product deleted successfully", "id": product.id}
