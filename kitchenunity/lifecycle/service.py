from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NoReturn

from kitchenunity import audit, events
from kitchenunity.crm.schemas import CustomerRead, LeadRead
from kitchenunity.lifecycle.reducers import (
    OrderStatusPlan,
    plan_lead_conversion,
    plan_order_transition,
    plan_quote_conversion,
)
from kitchenunity.metrics import observe_lifecycle_transition
from kitchenunity.platform.security.errors import AuthorizationError
from kitchenunity.platform.security.context import TenantContext
from kitchenunity.records.errors import LifecycleError, RecordError, ValidationError
from kitchenunity.records.workspace import Workspace
from kitchenunity.sales.schemas import OrderRead, OrderStatus


logger = logging.getLogger("kitchenunity.lifecycle")


@dataclass(slots=True)
class LeadConversionResult:
    lead: LeadRead
    customer: CustomerRead
    created: bool


@dataclass(slots=True)
class OrderStatusResult:
    order: OrderRead
    previous_status: OrderStatus
    view: str


class LifecycleService:
    """Runs the two-entity transitions against a tenant workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    @property
    def context(self) -> TenantContext:
        return self.workspace.context

    async def convert_lead(self, lead_id: str) -> LeadConversionResult:
        transition = "lead_to_customer"
        leads = self.workspace.leads
        customers = self.workspace.customers

        lead = leads.get(lead_id) or await leads.load_one(lead_id)
        if customers.loaded_store_id != self.context.store_id:
            await customers.list(self.context.store_id)

        plan = plan_lead_conversion(lead, customers.items)
        if plan.is_noop and plan.existing_customer is not None:
            logger.info(
                "lifecycle.lead_already_converted",
                extra={"entity_id": lead.id, "store_id": lead.store_id, "transition": transition},
            )
            observe_lifecycle_transition(transition, "noop")
            return LeadConversionResult(lead=lead, customer=plan.existing_customer, created=False)

        created = False
        if plan.customer is not None:
            try:
                customer = await customers.create(plan.customer)
            except (RecordError, AuthorizationError):
                observe_lifecycle_transition(transition, "failed")
                raise
            created = True
        else:
            customer = plan.existing_customer  # type: ignore[assignment]

        if plan.lead_changes:
            try:
                lead = await leads.update(lead.id, plan.lead_changes, expected_version=lead.row_version)
            except (RecordError, AuthorizationError) as exc:
                await self._compensate_customer(customer.id if created else None, lead, exc)

        audit.record(
            actor_user_id=self.context.user_id,
            store_id=lead.store_id,
            entity_type="crm.lead",
            entity_id=lead.id,
            action="lead.convert",
            before={"status": plan.lead.status.value},
            after={"status": lead.status.value, "customer_id": customer.id},
            correlation_id=self.context.correlation_id,
        )
        events.publish(
            events.build_envelope(
                "crm.lead.converted",
                store_id=lead.store_id,
                actor_user_id=self.context.user_id,
                payload={"lead_id": lead.id, "customer_id": customer.id, "customer_created": created},
            )
        )
        observe_lifecycle_transition(transition, "ok")
        logger.info(
            "lifecycle.lead_converted",
            extra={"entity_id": lead.id, "store_id": lead.store_id, "transition": transition},
        )
        return LeadConversionResult(lead=lead, customer=customer, created=created)

    async def _compensate_customer(self, customer_id: str | None, lead: LeadRead, cause: Exception) -> NoReturn:
        transition = "lead_to_customer"
        if customer_id is None:
            observe_lifecycle_transition(transition, "failed")
            raise LifecycleError(transition, f"Lead '{lead.id}' could not be marked Qualified: {cause}") from cause

        try:
            await self.workspace.customers.revert_create(customer_id)
        except (RecordError, AuthorizationError) as revert_exc:
            observe_lifecycle_transition(transition, "partial")
            logger.error(
                "lifecycle.compensation_failed",
                extra={
                    "entity_id": lead.id,
                    "store_id": lead.store_id,
                    "transition": transition,
                    "error": str(revert_exc),
                },
            )
            raise LifecycleError(
                transition,
                f"Lead '{lead.id}' was not updated and customer '{customer_id}' could not be rolled back",
                written={"customer_id": customer_id},
            ) from cause

        observe_lifecycle_transition(transition, "rolled_back")
        logger.warning(
            "lifecycle.lead_conversion_rolled_back",
            extra={"entity_id": lead.id, "store_id": lead.store_id, "transition": transition, "error": str(cause)},
        )
        raise LifecycleError(transition, f"Lead '{lead.id}' conversion rolled back: {cause}") from cause

    async def convert_quote(self, order_id: str, *, expected_version: int | None = None) -> OrderStatusResult:
        order = await self._load_order(order_id)
        try:
            plan = plan_quote_conversion(order)
        except RecordError:
            observe_lifecycle_transition("quote_to_order", "rejected")
            raise
        return await self._apply_order_plan("quote_to_order", plan, expected_version)

    async def transition_order(
        self,
        order_id: str,
        target: OrderStatus | str,
        *,
        expected_version: int | None = None,
    ) -> OrderStatusResult:
        try:
            target_status = OrderStatus(target)
        except ValueError as exc:
            raise ValidationError(f"Unknown order status '{target}'") from exc

        order = await self._load_order(order_id)
        try:
            plan = plan_order_transition(order, target_status)
        except RecordError:
            observe_lifecycle_transition("order_status", "rejected")
            raise
        return await self._apply_order_plan("order_status", plan, expected_version)

    async def _load_order(self, order_id: str) -> OrderRead:
        orders = self.workspace.orders
        return orders.get(order_id) or await orders.load_one(order_id)

    async def _apply_order_plan(
        self,
        transition: str,
        plan: OrderStatusPlan,
        expected_version: int | None,
    ) -> OrderStatusResult:
        previous = plan.order.status
        try:
            order = await self.workspace.orders.update(
                plan.order.id,
                plan.changes,
                expected_version=expected_version or plan.order.row_version,
            )
        except (RecordError, AuthorizationError):
            observe_lifecycle_transition(transition, "failed")
            raise

        events.publish(
            events.build_envelope(
                "sales.order.status_changed",
                store_id=order.store_id,
                actor_user_id=self.context.user_id,
                payload={"order_id": order.id, "from": previous.value, "to": order.status.value},
            )
        )
        observe_lifecycle_transition(transition, "ok")
        logger.info(
            "lifecycle.order_status_changed",
            extra={
                "entity_id": order.id,
                "store_id": order.store_id,
                "transition": f"{previous.value}->{order.status.value}",
            },
        )
        return OrderStatusResult(order=order, previous_status=previous, view=plan.view)
