from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.product import DOSAGE_FORMS, GST_SLABS, SCHEDULES


class ProductBase(BaseModel):
    name: Optional[str] = None
    brand: str = Field(..., min_length=1)
    generic: str = Field(..., min_length=1)
    form: str
    strength: str = Field(..., min_length=1)
    schedule: str = "OTC"
    gst_percent: Decimal = Decimal("12")
    hsn_code: Optional[str] = None
    mrp: Decimal = Field(..., ge=0)
    selling_price: Optional[Decimal] = Field(None, ge=0)
    unit: str = "units"
    min_stock: int = Field(10, ge=0)
    supplier_id: Optional[int] = None

    @field_validator("form")
    @classmethod
    def form_known(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in DOSAGE_FORMS:
            raise ValueError(f"form must be one of {', '.join(DOSAGE_FORMS)}")
        return v

    @field_validator("schedule")
    @classmethod
    def schedule_known(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in SCHEDULES:
            raise ValueError(f"schedule must be one of {', '.join(SCHEDULES)}")
        return v

    @field_validator("gst_percent")
    @classmethod
    def gst_slab(cls, v: Decimal) -> Decimal:
        if v not in GST_SLABS:
            raise ValueError(f"gst_percent must be one of {GST_SLABS}")
        return v


class ProductCreate(ProductBase):
    sku: str = Field(..., min_length=1)
    stock: int = Field(0, ge=0)

    @field_validator("sku")
    @classmethod
    def sku_upper(cls, v: str) -> str:
        return v.strip().upper()


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    brand: Optional[str] = None
    generic: Optional[str] = None
    strength: Optional[str] = None
    gst_percent: Optional[Decimal] = None
    hsn_code: Optional[str] = None
    mrp: Optional[Decimal] = Field(None, ge=0)
    selling_price: Optional[Decimal] = Field(None, ge=0)
    unit: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    supplier_id: Optional[int] = None
    is_active: Optional[bool] = None


class StockAdjustment(BaseModel):
    quantity: int = Field(..., gt=0)
    operation: Literal["add", "subtract"]


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sku: str
    display_name: str
    brand: str
    generic: str
    form: str
    strength: str
    schedule: str
    gst_percent: Decimal
    hsn_code: Optional[str] = None
    mrp: Decimal
    selling_price: Optional[Decimal] = None
    unit: str
    stock: int
    min_stock: int
    is_active: bool
    is_low_stock: bool
    supplier_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
