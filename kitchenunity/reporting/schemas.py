from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from kitchenunity.crm.schemas import LeadRead


class AccountingSummaryRead(BaseModel):
    store_id: str
    total_revenue: Decimal
    receivables: Decimal
    completed: Decimal
    estimated_tax: Decimal
    order_count: int


class MonthlyRevenueRow(BaseModel):
    month: str
    revenue: Decimal
    count: int


class BreakdownRow(BaseModel):
    name: str
    value: int


class DashboardCountsRead(BaseModel):
    orders: int
    customers: int
    claims: int
    recent_leads: list[LeadRead] = Field(default_factory=list)


class OverviewReportRead(BaseModel):
    store_id: str
    average_order_value: Decimal
    lead_conversion_rate: Decimal
    support_pressure: int
    revenue_by_month: list[MonthlyRevenueRow]
    lead_sources: list[BreakdownRow]
    claim_statuses: list[BreakdownRow]
    dashboard: DashboardCountsRead
