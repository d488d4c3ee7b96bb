"""Order money arithmetic.

Every figure is derived from the order's line items, tax configuration and
expenses; nothing here performs I/O. Amounts are rounded to cents, half up.
The persisted ``amount`` of an order is its pre-tax subtotal; ``total_due``
and ``net_profit`` are always derived at read time.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


class _LineItemLike(Protocol):
    price: Any
    quantity: Any


class _ExpenseLike(Protocol):
    amount: Any


@dataclass(frozen=True, slots=True)
class OrderFinancials:
    subtotal: Decimal
    effective_tax_rate: Decimal
    tax_amount: Decimal
    total_due: Decimal
    total_expenses: Decimal
    net_profit: Decimal | None

    @property
    def has_profit(self) -> bool:
        return self.net_profit is not None


def money(value: Any) -> Decimal:
    return _decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name)


def line_subtotal(line_items: Iterable[_LineItemLike | dict[str, Any]]) -> Decimal:
    total = sum(
        (_decimal(_field(item, "price")) * _decimal(_field(item, "quantity")) for item in line_items),
        start=Decimal("0"),
    )
    return money(total)


def total_expenses(expenses: Iterable[_ExpenseLike | dict[str, Any]]) -> Decimal:
    return money(sum((_decimal(_field(expense, "amount")) for expense in expenses), start=Decimal("0")))


def resolve_tax_rate(
    *,
    sales_tax_override: Any = None,
    order_tax_rate: Any = None,
    store_default_rate: Any = None,
    fallback_rate: Any = None,
) -> Decimal:
    """Pick the first configured rate: override, order rate, store default, then fallback."""

    for candidate in (sales_tax_override, order_tax_rate, store_default_rate, fallback_rate):
        if candidate is None:
            continue
        if isinstance(candidate, str) and not candidate.strip():
            continue
        return _decimal(candidate)
    return Decimal("0")


def compute_financials(
    *,
    line_items: Iterable[_LineItemLike | dict[str, Any]],
    expenses: Iterable[_ExpenseLike | dict[str, Any]] = (),
    tax_rate: Any = None,
    sales_tax_override: Any = None,
    is_non_taxable: bool = False,
    store_default_rate: Any = None,
    fallback_rate: Any = None,
) -> OrderFinancials:
    subtotal = line_subtotal(line_items)
    rate = resolve_tax_rate(
        sales_tax_override=sales_tax_override,
        order_tax_rate=tax_rate,
        store_default_rate=store_default_rate,
        fallback_rate=fallback_rate,
    )
    tax_amount = Decimal("0.00") if is_non_taxable else money(subtotal * rate / HUNDRED)

    expense_list = list(expenses)
    expenses_total = total_expenses(expense_list)
    # Profit is opt-in: absent, not zero, when no expense was recorded.
    net_profit = money(subtotal - expenses_total - tax_amount) if expense_list else None

    return OrderFinancials(
        subtotal=subtotal,
        effective_tax_rate=rate,
        tax_amount=tax_amount,
        total_due=money(subtotal + tax_amount),
        total_expenses=expenses_total,
        net_profit=net_profit,
    )


def order_financials(order: Any, *, store_default_rate: Any = None, fallback_rate: Any = None) -> OrderFinancials:
    return compute_financials(
        line_items=order.line_items,
        expenses=order.expenses,
        tax_rate=order.tax_rate,
        sales_tax_override=order.sales_tax_override,
        is_non_taxable=order.is_non_taxable,
        store_default_rate=store_default_rate,
        fallback_rate=fallback_rate,
    )
