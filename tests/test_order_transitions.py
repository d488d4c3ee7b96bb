from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from kitchenunity.records.errors import InvalidTransition, ValidationError
from kitchenunity.sales.schemas import OrderRead, OrderStatus
from kitchenunity.sales.transitions import (
    can_transition,
    ensure_transition,
    order_view,
    prepare_order_create,
    prepare_order_update,
)


def _order(status: OrderStatus) -> OrderRead:
    return OrderRead(
        id="ord-1",
        store_id="acme",
        customer_id="cus-1",
        status=status,
        created_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (OrderStatus.QUOTE, OrderStatus.PROCESSING),
        (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
        (OrderStatus.SHIPPED, OrderStatus.INVOICED),
        (OrderStatus.INVOICED, OrderStatus.COMPLETED),
    ],
)
def test_forward_transitions_are_allowed(current: OrderStatus, target: OrderStatus) -> None:
    assert can_transition(current, target)
    ensure_transition(current, target)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (OrderStatus.SHIPPED, OrderStatus.QUOTE),
        (OrderStatus.QUOTE, OrderStatus.SHIPPED),
        (OrderStatus.COMPLETED, OrderStatus.PROCESSING),
        (OrderStatus.PROCESSING, OrderStatus.PROCESSING),
    ],
)
def test_other_transitions_are_rejected(current: OrderStatus, target: OrderStatus) -> None:
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransition):
        ensure_transition(current, target)


def test_order_view_partitions_statuses() -> None:
    assert order_view(OrderStatus.QUOTE) == "quotes"
    assert order_view(OrderStatus.PROCESSING) == "orders"
    assert order_view(OrderStatus.SHIPPED) == "orders"
    assert order_view(OrderStatus.COMPLETED) == "orders"
    assert order_view(OrderStatus.INVOICED) == "invoices"


def test_prepare_create_derives_amount_from_line_items() -> None:
    prepared = prepare_order_create(
        {
            "status": OrderStatus.QUOTE,
            "line_items": [{"price": Decimal("450"), "quantity": 10}, {"price": Decimal("12.50"), "quantity": 2}],
        }
    )

    assert prepared["amount"] == Decimal("4525.00")


def test_prepare_create_rejects_later_statuses() -> None:
    with pytest.raises(ValidationError):
        prepare_order_create({"status": OrderStatus.SHIPPED, "line_items": []})


def test_prepare_update_recomputes_amount_and_checks_status() -> None:
    current = _order(OrderStatus.PROCESSING)

    prepared = prepare_order_update({"line_items": [{"price": "99.99", "quantity": 1}]}, current)
    assert prepared["amount"] == Decimal("99.99")

    assert prepare_order_update({"status": OrderStatus.SHIPPED}, current) == {"status": OrderStatus.SHIPPED}
    with pytest.raises(InvalidTransition):
        prepare_order_update({"status": OrderStatus.QUOTE}, current)
