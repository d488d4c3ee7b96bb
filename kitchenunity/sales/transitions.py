from __future__ import annotations

from typing import Any

from kitchenunity.records.errors import InvalidTransition, ValidationError
from kitchenunity.sales.financials import line_subtotal
from kitchenunity.sales.schemas import OrderRead, OrderStatus


VALID_ORDER_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.QUOTE: {OrderStatus.PROCESSING},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.INVOICED},
    OrderStatus.INVOICED: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),
}

INITIAL_ORDER_STATUSES = frozenset({OrderStatus.QUOTE, OrderStatus.PROCESSING})

QUOTE_STATUSES = frozenset({OrderStatus.QUOTE})
ORDER_STATUSES = frozenset({OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.COMPLETED})
INVOICE_STATUSES = frozenset({OrderStatus.INVOICED})


def can_transition(current: str, target: str) -> bool:
    return target in VALID_ORDER_TRANSITIONS.get(current, set())


def ensure_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(str(current), str(target))


def order_view(status: str) -> str:
    """Which list an order shows up in: quotes, orders or invoices."""

    if status in QUOTE_STATUSES:
        return "quotes"
    if status in INVOICE_STATUSES:
        return "invoices"
    return "orders"


def prepare_order_create(data: dict[str, Any]) -> dict[str, Any]:
    status = data.get("status", OrderStatus.QUOTE)
    if status not in INITIAL_ORDER_STATUSES:
        raise ValidationError(f"New orders start as Quote or Processing, not {status}")
    prepared = dict(data)
    prepared["amount"] = line_subtotal(prepared.get("line_items") or [])
    return prepared


def prepare_order_update(changes: dict[str, Any], current: OrderRead | None) -> dict[str, Any]:
    prepared = dict(changes)
    if "line_items" in prepared:
        prepared["amount"] = line_subtotal(prepared["line_items"] or [])

    target = prepared.get("status")
    if target is not None and current is not None and target != current.status:
        ensure_transition(current.status, target)
    return prepared
