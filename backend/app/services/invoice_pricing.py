"""
Invoice pricing: line amounts, discounts, GST split, rounding and balance.

Pure functions over Decimal. No database access; the invoice service
resolves catalog data first and hands fully resolved lines in here.

Pipeline:
1. gross = rate x qty per line
2. discount: per-line percentage, or one global amount off the subtotal
3. tax: computed per line from GST%, or a manual total used verbatim
4. GST split: all IGST when inter-state, else CGST/SGST halves
5. rounding to whole rupees with a fixed 0.5 threshold (frac > 0.5 goes up)
6. balance = max(0, net payable - paid)
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP, InvalidOperation
from typing import List, Optional, Sequence, Tuple, Union

from app.core.exceptions import ValidationError

ZERO = Decimal("0")
HALF = Decimal("0.5")
HUNDRED = Decimal("100")
PAISE = Decimal("0.01")


def to_decimal(value, default: Decimal = ZERO) -> Decimal:
    """Coerce int/float/str/Decimal input to Decimal; None maps to default."""
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid numeric value: {value!r}")


def to_paise(value: Decimal) -> Decimal:
    return value.quantize(PAISE, rounding=ROUND_HALF_UP)


# ------------------------------------------------------------------------------
# Discount and tax modes, chosen once when the request is parsed
# ------------------------------------------------------------------------------

@dataclass(frozen=True)
class PerLineDiscount:
    """Each line carries its own discount percentage."""


@dataclass(frozen=True)
class GlobalDiscount:
    """A single amount taken off the aggregate subtotal; line percentages are ignored."""
    amount: Decimal


DiscountMode = Union[PerLineDiscount, GlobalDiscount]


@dataclass(frozen=True)
class ComputedTax:
    """Tax derived per line from each line's GST percentage."""


@dataclass(frozen=True)
class ManualTax:
    """Tax total supplied by the caller and used verbatim."""
    amount: Decimal


TaxMode = Union[ComputedTax, ManualTax]


def discount_mode_for(global_discount) -> DiscountMode:
    if global_discount is None:
        return PerLineDiscount()
    return GlobalDiscount(to_decimal(global_discount))


def tax_mode_for(tax_total) -> TaxMode:
    if tax_total is None:
        return ComputedTax()
    return ManualTax(to_decimal(tax_total))


# ------------------------------------------------------------------------------
# Inputs and results
# ------------------------------------------------------------------------------

@dataclass(frozen=True)
class LineInput:
    qty: int
    rate: Decimal
    gst_pct: Decimal = ZERO
    discount_pct: Decimal = ZERO


@dataclass
class PricedLine:
    gross: Decimal
    discount: Decimal
    taxable: Decimal
    tax: Decimal


@dataclass(frozen=True)
class GstSplit:
    cgst: Decimal
    sgst: Decimal
    igst: Decimal

    @property
    def total(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


@dataclass
class InvoiceTotals:
    lines: List[PricedLine] = field(default_factory=list)
    sub_total: Decimal = ZERO
    discount_total: Decimal = ZERO
    taxable_base: Decimal = ZERO
    tax_total: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO
    total_before_round: Decimal = ZERO
    round_off: Decimal = ZERO
    net_payable: Decimal = ZERO
    paid: Decimal = ZERO
    balance: Decimal = ZERO


# ------------------------------------------------------------------------------
# Building blocks
# ------------------------------------------------------------------------------

def split_gst(tax: Decimal, is_inter_state: bool) -> GstSplit:
    """Inter-state supply is all IGST; intra-state is split evenly into CGST and SGST."""
    if is_inter_state:
        return GstSplit(cgst=ZERO, sgst=ZERO, igst=tax)
    half = tax / 2
    return GstSplit(cgst=half, sgst=half, igst=ZERO)


def round_net_payable(total: Decimal) -> Tuple[Decimal, Decimal]:
    """
    Round to whole rupees: up only when the fraction is strictly above 0.5.

    Returns (net_payable, round_off) where round_off = net_payable - total
    and carries the sign of the adjustment.

        160.4 -> (160, -0.4)
        160.5 -> (160, -0.5)
        160.6 -> (161,  0.4)
    """
    floor = total.to_integral_value(rounding=ROUND_FLOOR)
    frac = total - floor
    net = floor + 1 if frac > HALF else floor
    return net, net - total


def price_line(line: LineInput, discount_mode: DiscountMode) -> PricedLine:
    gross = line.rate * line.qty
    if isinstance(discount_mode, GlobalDiscount):
        discount = ZERO
    else:
        discount = gross * line.discount_pct / HUNDRED
    taxable = gross - discount
    return PricedLine(
        gross=gross,
        discount=discount,
        taxable=taxable,
        tax=taxable * line.gst_pct / HUNDRED,
    )


# ------------------------------------------------------------------------------
# Invoice totals
# ------------------------------------------------------------------------------

def compute_totals(
    lines: Sequence[LineInput],
    discount_mode: DiscountMode = PerLineDiscount(),
    tax_mode: TaxMode = ComputedTax(),
    is_inter_state: bool = False,
    paid: Optional[Decimal] = None,
) -> InvoiceTotals:
    """
    Price a whole invoice.

    Raises:
        ValidationError: when the discount exceeds the subtotal or an amount is negative
    """
    totals = InvoiceTotals()
    totals.lines = [price_line(line, discount_mode) for line in lines]
    totals.sub_total = sum((p.gross for p in totals.lines), ZERO)

    if isinstance(discount_mode, GlobalDiscount):
        if discount_mode.amount < 0:
            raise ValidationError("Discount cannot be negative")
        totals.discount_total = discount_mode.amount
    else:
        totals.discount_total = sum((p.discount for p in totals.lines), ZERO)

    totals.taxable_base = totals.sub_total - totals.discount_total
    if totals.taxable_base < 0:
        raise ValidationError("Discount cannot exceed the invoice subtotal")

    if isinstance(tax_mode, ManualTax):
        if tax_mode.amount < 0:
            raise ValidationError("Tax total cannot be negative")
        split = split_gst(tax_mode.amount, is_inter_state)
        totals.tax_total = tax_mode.amount
        totals.cgst, totals.sgst, totals.igst = split.cgst, split.sgst, split.igst
    else:
        # Split line by line; rates differ per line but the supply type is invoice-wide
        for priced in totals.lines:
            split = split_gst(priced.tax, is_inter_state)
            totals.cgst += split.cgst
            totals.sgst += split.sgst
            totals.igst += split.igst
            totals.tax_total += priced.tax

    totals.total_before_round = totals.taxable_base + totals.tax_total
    totals.net_payable, totals.round_off = round_net_payable(totals.total_before_round)

    totals.paid = totals.net_payable if paid is None else to_decimal(paid)
    if totals.paid < 0:
        raise ValidationError("Paid amount cannot be negative")
    totals.balance = max(ZERO, totals.net_payable - totals.paid)
    return totals
