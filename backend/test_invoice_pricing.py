from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError
from app.services.invoice_pricing import (
    ComputedTax,
    GlobalDiscount,
    LineInput,
    ManualTax,
    PerLineDiscount,
    compute_totals,
    discount_mode_for,
    round_net_payable,
    split_gst,
    tax_mode_for,
)

D = Decimal


def test_single_line_intra_state_scenario():
    totals = compute_totals([LineInput(qty=2, rate=D("100"), gst_pct=D("12"))])

    assert totals.sub_total == D("200")
    assert totals.discount_total == 0
    assert totals.tax_total == D("24")
    assert totals.cgst == D("12")
    assert totals.sgst == D("12")
    assert totals.igst == 0
    assert totals.total_before_round == D("224")
    assert totals.net_payable == D("224")
    assert totals.round_off == 0
    assert totals.paid == D("224")
    assert totals.balance == 0


@pytest.mark.parametrize("total, net, round_off", [
    (D("160.4"), D("160"), D("-0.4")),
    (D("160.5"), D("160"), D("-0.5")),
    (D("160.6"), D("161"), D("0.4")),
    (D("160.51"), D("161"), D("0.49")),
    (D("160"), D("160"), D("0")),
])
def test_rounding_threshold(total, net, round_off):
    assert round_net_payable(total) == (net, round_off)


def test_rounding_applies_to_taxable_base_plus_tax():
    # subtotal 150 with a manual tax of 10.4 / 10.6
    line = [LineInput(qty=1, rate=D("150"))]

    down = compute_totals(line, tax_mode=ManualTax(D("10.4")))
    assert down.net_payable == D("160")
    assert down.round_off == D("-0.4")

    up = compute_totals(line, tax_mode=ManualTax(D("10.6")))
    assert up.net_payable == D("161")
    assert up.round_off == D("0.4")


def test_per_line_discounts_accumulate():
    lines = [
        LineInput(qty=3, rate=D("33.33"), gst_pct=D("5"), discount_pct=D("10")),
        LineInput(qty=1, rate=D("250"), gst_pct=D("18"), discount_pct=D("2.5")),
        LineInput(qty=7, rate=D("12.10"), gst_pct=D("12")),
    ]
    totals = compute_totals(lines, discount_mode=PerLineDiscount())

    expected_sub = sum(l.rate * l.qty for l in lines)
    expected_disc = sum(l.rate * l.qty * l.discount_pct / 100 for l in lines)
    assert totals.sub_total == expected_sub
    assert totals.discount_total == expected_disc
    assert totals.taxable_base == expected_sub - expected_disc


def test_global_discount_ignores_line_percentages():
    lines = [LineInput(qty=2, rate=D("100"), gst_pct=D("12"), discount_pct=D("50"))]
    totals = compute_totals(lines, discount_mode=GlobalDiscount(D("20")))

    assert totals.lines[0].discount == 0
    assert totals.lines[0].taxable == D("200")
    assert totals.discount_total == D("20")
    assert totals.taxable_base == D("180")
    # tax stays on the undiscounted line amounts
    assert totals.tax_total == D("24")
    assert totals.net_payable == D("204")


def test_inter_state_puts_all_tax_in_igst():
    lines = [
        LineInput(qty=1, rate=D("100"), gst_pct=D("5")),
        LineInput(qty=1, rate=D("100"), gst_pct=D("18")),
    ]
    totals = compute_totals(lines, is_inter_state=True)

    assert totals.igst == D("23")
    assert totals.cgst == 0 and totals.sgst == 0
    assert totals.cgst + totals.sgst + totals.igst == totals.tax_total


def test_mixed_rates_split_line_by_line():
    lines = [
        LineInput(qty=1, rate=D("99.99"), gst_pct=D("5")),
        LineInput(qty=3, rate=D("17.35"), gst_pct=D("12")),
        LineInput(qty=1, rate=D("10"), gst_pct=D("28")),
    ]
    totals = compute_totals(lines)

    assert totals.igst == 0
    assert totals.cgst == totals.sgst
    assert totals.cgst + totals.sgst == totals.tax_total


def test_manual_tax_is_split_too():
    totals = compute_totals([LineInput(qty=1, rate=D("100"), gst_pct=D("12"))], tax_mode=ManualTax(D("7")))
    assert totals.tax_total == D("7")
    assert totals.cgst == D("3.5")
    assert totals.sgst == D("3.5")

    inter = compute_totals([LineInput(qty=1, rate=D("100"))], tax_mode=ManualTax(D("7")), is_inter_state=True)
    assert inter.igst == D("7")


@pytest.mark.parametrize("paid, balance", [
    (None, D("0")),
    (D("0"), D("224")),
    (D("100"), D("124")),
    (D("224"), D("0")),
    (D("500"), D("0")),
])
def test_balance_is_never_negative(paid, balance):
    totals = compute_totals([LineInput(qty=2, rate=D("100"), gst_pct=D("12"))], paid=paid)
    assert totals.balance == balance


def test_discount_larger_than_subtotal_is_rejected():
    with pytest.raises(ValidationError):
        compute_totals([LineInput(qty=1, rate=D("10"))], discount_mode=GlobalDiscount(D("11")))


def test_negative_paid_is_rejected():
    with pytest.raises(ValidationError):
        compute_totals([LineInput(qty=1, rate=D("10"))], paid=D("-1"))


def test_mode_selection_from_request_fields():
    assert discount_mode_for(None) == PerLineDiscount()
    assert discount_mode_for(0) == GlobalDiscount(D("0"))
    assert tax_mode_for(None) == ComputedTax()
    assert tax_mode_for("12.50") == ManualTax(D("12.50"))


def test_split_gst_halves():
    split = split_gst(D("0.05"), is_inter_state=False)
    assert split.cgst == split.sgst == D("0.025")
    assert split.total == D("0.05")
