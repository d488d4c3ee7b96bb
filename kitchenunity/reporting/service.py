"""Aggregates over one tenant's already-loaded collections.

Nothing here reads from the store of record; callers pass whatever the
workspace holds for the effective store id.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from kitchenunity.crm.schemas import ClaimRead, CustomerRead, LeadRead
from kitchenunity.records.collection import sort_entities
from kitchenunity.reporting.schemas import (
    AccountingSummaryRead,
    BreakdownRow,
    DashboardCountsRead,
    MonthlyRevenueRow,
    OverviewReportRead,
)
from kitchenunity.sales.financials import HUNDRED, money, resolve_tax_rate
from kitchenunity.sales.schemas import OrderRead, OrderStatus

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
RECEIVABLE_STATUSES = frozenset({OrderStatus.SHIPPED, OrderStatus.INVOICED})
RECENT_LEADS_LIMIT = 10


def _total(orders: Sequence[OrderRead]) -> Decimal:
    return money(sum((order.amount for order in orders), start=Decimal("0")))


def summarize_accounting(
    orders: Sequence[OrderRead],
    *,
    store_id: str,
    store_default_rate: Any = None,
    fallback_rate: Any = None,
) -> AccountingSummaryRead:
    estimated_tax = Decimal("0")
    for order in orders:
        if order.is_non_taxable:
            continue
        rate = resolve_tax_rate(
            sales_tax_override=order.sales_tax_override,
            order_tax_rate=order.tax_rate,
            store_default_rate=store_default_rate,
            fallback_rate=fallback_rate,
        )
        estimated_tax += order.amount * rate / HUNDRED

    return AccountingSummaryRead(
        store_id=store_id,
        total_revenue=_total(orders),
        receivables=_total([order for order in orders if order.status in RECEIVABLE_STATUSES]),
        completed=_total([order for order in orders if order.status == OrderStatus.COMPLETED]),
        estimated_tax=money(estimated_tax),
        order_count=len(orders),
    )


def revenue_by_month(orders: Sequence[OrderRead]) -> list[MonthlyRevenueRow]:
    revenue = [Decimal("0")] * 12
    counts = [0] * 12
    for order in orders:
        index = order.created_at.month - 1
        revenue[index] += order.amount
        counts[index] += 1
    return [
        MonthlyRevenueRow(month=name, revenue=money(revenue[index]), count=counts[index])
        for index, name in enumerate(MONTHS)
    ]


def _breakdown(values: Sequence[str]) -> list[BreakdownRow]:
    # Counter keeps first-seen order, matching how the rows are charted.
    return [BreakdownRow(name=name, value=count) for name, count in Counter(values).items()]


def lead_source_breakdown(leads: Sequence[LeadRead]) -> list[BreakdownRow]:
    return _breakdown([lead.source or "Direct" for lead in leads])


def claim_status_breakdown(claims: Sequence[ClaimRead]) -> list[BreakdownRow]:
    return _breakdown([claim.status.value for claim in claims])


def average_order_value(orders: Sequence[OrderRead]) -> Decimal:
    if not orders:
        return Decimal("0.00")
    return money(_total(orders) / len(orders))


def lead_conversion_rate(leads: Sequence[LeadRead], orders: Sequence[OrderRead]) -> Decimal:
    """Orders per lead, as a percentage with one decimal."""

    if not leads:
        return Decimal("0.0")
    return (Decimal(len(orders)) * HUNDRED / len(leads)).quantize(Decimal("0.1"))


def dashboard_counts(
    *,
    orders: Sequence[OrderRead],
    customers: Sequence[CustomerRead],
    claims: Sequence[ClaimRead],
    leads: Sequence[LeadRead],
) -> DashboardCountsRead:
    recent = sort_entities(leads, "created_at", descending=True)[:RECENT_LEADS_LIMIT]
    return DashboardCountsRead(
        orders=len(orders),
        customers=len(customers),
        claims=len(claims),
        recent_leads=recent,
    )


def build_overview(
    *,
    store_id: str,
    orders: Sequence[OrderRead],
    customers: Sequence[CustomerRead],
    claims: Sequence[ClaimRead],
    leads: Sequence[LeadRead],
) -> OverviewReportRead:
    return OverviewReportRead(
        store_id=store_id,
        average_order_value=average_order_value(orders),
        lead_conversion_rate=lead_conversion_rate(leads, orders),
        support_pressure=len(claims),
        revenue_by_month=revenue_by_month(orders),
        lead_sources=lead_source_breakdown(leads),
        claim_statuses=claim_status_breakdown(claims),
        dashboard=dashboard_counts(orders=orders, customers=customers, claims=claims, leads=leads),
    )
