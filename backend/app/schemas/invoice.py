from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.services.gst import is_valid_gstin

PaymentModeLiteral = Literal["CASH", "CARD", "UPI", "CREDIT"]
InvoiceStatusLiteral = Literal["PAID", "PENDING", "RETURN"]


class InvoiceItemIn(BaseModel):
    """One requested line: a catalog reference or a free-text custom item."""
    product_id: Optional[int] = Field(None, validation_alias=AliasChoices("product_id", "drug", "product"))
    batch: Optional[str] = None
    product_name: Optional[str] = Field(None, validation_alias=AliasChoices("product_name", "name"))
    qty: int = Field(..., ge=1, validation_alias=AliasChoices("qty", "quantity"))
    free_qty: int = Field(0, ge=0)
    unit_rate: Optional[Decimal] = Field(None, ge=0, validation_alias=AliasChoices("unit_rate", "price"))
    mrp: Optional[Decimal] = Field(None, ge=0)
    gst_pct: Optional[Decimal] = Field(None, ge=0, le=100, validation_alias=AliasChoices("gst_pct", "gst_percent"))
    discount_pct: Optional[Decimal] = Field(None, ge=0, le=100, validation_alias=AliasChoices("discount_pct", "discount"))


class InvoiceCreate(BaseModel):
    items: List[InvoiceItemIn] = Field(..., min_length=1)
    patient_name: str = Field(..., min_length=1, max_length=255)
    patient_address: Optional[str] = None
    doctor_name: Optional[str] = None
    customer_phone: Optional[str] = None
    department: Optional[str] = None
    mode: PaymentModeLiteral = "CASH"
    bill_type: str = "TAX_INVOICE"
    status: Optional[InvoiceStatusLiteral] = None

    # Present -> global discount mode; absent -> per-line discount percentages
    discount_total: Optional[Decimal] = Field(None, ge=0)
    # Present -> manual tax used verbatim; absent -> computed per line
    tax_total: Optional[Decimal] = Field(None, ge=0)
    paid: Optional[Decimal] = Field(None, ge=0)

    is_inter_state: bool = False
    place_of_supply: Optional[str] = None
    gstin: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("patient_name")
    @classmethod
    def patient_name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("patient_name cannot be blank")
        return v

    @field_validator("gstin")
    @classmethod
    def gstin_format(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip().upper()
        if not is_valid_gstin(v):
            raise ValueError("Invalid GSTIN format")
        return v


class InvoiceUpdate(BaseModel):
    """Only status and notes are mutable after creation."""
    model_config = ConfigDict(extra="forbid")

    status: Optional[InvoiceStatusLiteral] = None
    notes: Optional[str] = None


class InvoiceItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: Optional[int] = None
    batch_ref: Optional[str] = None
    product_name: str
    qty: int
    free_qty: int
    unit_rate: Decimal
    mrp: Optional[Decimal] = None
    discount_pct: Decimal
    gst_pct: Decimal
    amount: Decimal


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_no: str
    patient_name: str
    patient_address: Optional[str] = None
    doctor_name: Optional[str] = None
    customer_phone: Optional[str] = None
    department: Optional[str] = None
    mode: str
    bill_type: str
    gstin: Optional[str] = None
    place_of_supply: Optional[str] = None
    is_inter_state: bool
    items: List[InvoiceItemOut]
    sub_total: Decimal
    discount_total: Decimal
    tax_total: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    round_off: Decimal
    net_payable: Decimal
    paid: Decimal
    balance: Decimal
    status: str
    notes: Optional[str] = None
    created_by: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
