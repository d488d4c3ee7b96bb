from __future__ import annotations

from decimal import Decimal

import pytest

from kitchenunity.sales.financials import compute_financials, line_subtotal, money, resolve_tax_rate


CABINET_LINES = [
    {"product_name": "Shaker base cabinet", "price": Decimal("450"), "quantity": 10},
]


def test_order_figures_for_taxable_order_with_expenses() -> None:
    figures = compute_financials(
        line_items=CABINET_LINES,
        expenses=[{"amount": Decimal("300")}, {"amount": Decimal("120")}],
        tax_rate=Decimal("8.25"),
    )

    assert figures.subtotal == Decimal("4500.00")
    assert figures.tax_amount == Decimal("371.25")
    assert figures.total_due == Decimal("4871.25")
    assert figures.total_expenses == Decimal("420.00")
    assert figures.net_profit == Decimal("3708.75")
    assert figures.has_profit


def test_net_profit_is_absent_without_expenses() -> None:
    figures = compute_financials(line_items=CABINET_LINES, tax_rate=Decimal("8.25"))

    assert figures.net_profit is None
    assert figures.total_expenses == Decimal("0.00")


def test_non_taxable_order_has_no_tax() -> None:
    figures = compute_financials(line_items=CABINET_LINES, tax_rate=Decimal("8.25"), is_non_taxable=True)

    assert figures.tax_amount == Decimal("0.00")
    assert figures.total_due == Decimal("4500.00")


def test_rate_precedence() -> None:
    assert resolve_tax_rate(
        sales_tax_override="6",
        order_tax_rate="7",
        store_default_rate="8",
        fallback_rate="9",
    ) == Decimal("6")
    assert resolve_tax_rate(order_tax_rate="7", store_default_rate="8", fallback_rate="9") == Decimal("7")
    assert resolve_tax_rate(order_tax_rate="  ", store_default_rate="8", fallback_rate="9") == Decimal("8")
    assert resolve_tax_rate(fallback_rate=Decimal("8.25")) == Decimal("8.25")
    assert resolve_tax_rate() == Decimal("0")


def test_store_default_rate_applies_when_order_has_none() -> None:
    figures = compute_financials(line_items=CABINET_LINES, store_default_rate=Decimal("10"))

    assert figures.effective_tax_rate == Decimal("10")
    assert figures.tax_amount == Decimal("450.00")


@pytest.mark.parametrize(
    ("value", "expected"),
    [("0.005", "0.01"), ("0.004", "0.00"), ("2.675", "2.68"), (None, "0.00"), (3, "3.00")],
)
def test_money_rounds_half_up_to_cents(value: object, expected: str) -> None:
    assert money(value) == Decimal(expected)


def test_line_subtotal_accepts_models_and_mappings() -> None:
    class Line:
        price = "19.99"
        quantity = 3

    assert line_subtotal([Line(), {"price": 1, "quantity": 1}]) == Decimal("60.97")
    assert line_subtotal([]) == Decimal("0.00")
