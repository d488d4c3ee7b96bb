from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kitchenunity import audit, events
from kitchenunity.core.config import get_settings
from kitchenunity.metrics import observe_tenant_resolution
from kitchenunity.platform.security.context import TenantContext
from kitchenunity.platform.security.errors import AccessDenied
from kitchenunity.platform.security.policies import ALL_STORES, Action, can_perform, get_access_policy
from kitchenunity.records.errors import RecordNotFound, ValidationError
from kitchenunity.tenancy.models import Profile, Store
from kitchenunity.tenancy.resolver import (
    RESERVED_SUBDOMAINS,
    HostRules,
    SessionClaims,
    TenantResolution,
    resolve_tenant,
)
from kitchenunity.tenancy.schemas import ProfileAssign, ProfileRead, StoreCreate, StoreRead, StoreUpdate


logger = logging.getLogger("kitchenunity.tenancy")

RESERVED_STORE_KEYS = frozenset({ALL_STORES, *RESERVED_SUBDOMAINS})


@dataclass(slots=True)
class TenantService:
    store_resource: str = "tenancy.store"
    profile_resource: str = "tenancy.profile"

    def list_all_stores(self, session: Session) -> list[StoreRead]:
        rows = session.scalars(select(Store).order_by(Store.created_at.asc(), Store.id.asc())).all()
        return [StoreRead.model_validate(row) for row in rows]

    def list_stores(self, session: Session, ctx: TenantContext) -> list[StoreRead]:
        if ctx.is_admin:
            return self.list_all_stores(session)
        if not ctx.concrete_store_id:
            return []
        store = self.get_store(session, ctx.concrete_store_id)
        return [store] if store is not None else []

    def get_store(self, session: Session, store_id: str) -> StoreRead | None:
        row = session.get(Store, store_id)
        return StoreRead.model_validate(row) if row is not None else None

    def store_default_tax_rate(self, session: Session, store_id: str | None) -> Decimal | None:
        if not store_id:
            return None
        store = self.get_store(session, store_id)
        return store.default_tax_rate if store is not None else None

    def create_store(self, session: Session, ctx: TenantContext, payload: StoreCreate | dict[str, Any]) -> StoreRead:
        self._require(ctx, Action.CREATE, self.store_resource)
        dto = self._validate_store(payload)
        if RESERVED_STORE_KEYS & {dto.domain, dto.id}:
            raise ValidationError(f"Store key '{dto.id or dto.domain}' is reserved")

        existing = session.scalar(select(Store).where(Store.domain == dto.domain))
        if existing is not None:
            raise ValidationError(f"Store domain '{dto.domain}' is already taken")

        store = Store(
            id=dto.id or dto.domain,
            name=dto.name.strip(),
            domain=dto.domain,
            owner_email=str(dto.owner_email) if dto.owner_email else None,
            status=dto.status.value,
            default_tax_rate=dto.default_tax_rate,
        )
        session.add(store)
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise ValidationError(f"Store id '{store.id}' is already taken") from exc
        session.refresh(store)

        created = StoreRead.model_validate(store)
        audit.record(
            actor_user_id=ctx.user_id,
            store_id=created.id,
            entity_type=self.store_resource,
            entity_id=created.id,
            action="store.create",
            before=None,
            after=created.model_dump(mode="json"),
            correlation_id=ctx.correlation_id,
        )
        events.publish(
            events.build_envelope(
                "tenancy.store.created",
                store_id=created.id,
                actor_user_id=ctx.user_id,
                payload={"id": created.id, "domain": created.domain},
            )
        )
        return created

    def update_store(self, session: Session, ctx: TenantContext, store_id: str, payload: StoreUpdate) -> StoreRead:
        self._require(ctx, Action.EDIT, self.store_resource)
        store = session.get(Store, store_id)
        if store is None:
            raise RecordNotFound("store", store_id)

        before = StoreRead.model_validate(store).model_dump(mode="json")
        changes = payload.model_dump(exclude_unset=True)
        for field_name, value in changes.items():
            setattr(store, field_name, value)
        store.row_version = store.row_version + 1
        session.add(store)
        session.commit()
        session.refresh(store)

        updated = StoreRead.model_validate(store)
        audit.record(
            actor_user_id=ctx.user_id,
            store_id=store_id,
            entity_type=self.store_resource,
            entity_id=store_id,
            action="store.update",
            before=before,
            after=updated.model_dump(mode="json"),
            correlation_id=ctx.correlation_id,
        )
        return updated

    def get_profile(self, session: Session, user_id: str) -> ProfileRead | None:
        row = session.get(Profile, user_id)
        return ProfileRead.model_validate(row) if row is not None else None

    def assign_profile(self, session: Session, ctx: TenantContext, user_id: str, payload: ProfileAssign) -> ProfileRead:
        self._require(ctx, Action.EDIT, self.profile_resource)
        if payload.store_id and session.get(Store, payload.store_id) is None:
            raise RecordNotFound("store", payload.store_id)

        profile = session.get(Profile, user_id)
        before = ProfileRead.model_validate(profile).model_dump(mode="json") if profile is not None else None
        if profile is None:
            profile = Profile(id=user_id)
        profile.store_id = payload.store_id
        profile.role = payload.role.value
        if payload.email is not None:
            profile.email = str(payload.email)
        session.add(profile)
        session.commit()
        session.refresh(profile)

        assigned = ProfileRead.model_validate(profile)
        audit.record(
            actor_user_id=ctx.user_id,
            store_id=assigned.store_id,
            entity_type=self.profile_resource,
            entity_id=user_id,
            action="profile.assign",
            before=before,
            after=assigned.model_dump(mode="json"),
            correlation_id=ctx.correlation_id,
        )
        return assigned

    def resolve_context(
        self,
        session: Session,
        *,
        hostname: str | None,
        claims: SessionClaims | None,
        selected_admin_store_id: str | None = None,
        correlation_id: str | None = None,
        rules: HostRules | None = None,
    ) -> tuple[TenantResolution, TenantContext]:
        rules = rules or HostRules.from_settings(get_settings())
        profile = self.get_profile(session, claims.user_id) if claims is not None else None
        stores = self.list_all_stores(session)

        resolution = resolve_tenant(
            hostname,
            claims,
            profile,
            stores,
            selected_admin_store_id=selected_admin_store_id,
            rules=rules,
        )

        observe_tenant_resolution(resolution.source if not resolution.resolved else "resolved")
        if not resolution.resolved:
            logger.warning(
                "tenant.unresolved",
                extra={"store_id": resolution.host_store_id, "operation": "resolve", "error": resolution.source},
            )

        context = TenantContext(
            user_id=claims.user_id if claims is not None else "anonymous",
            role=resolution.role,
            store_id=resolution.store_id,
            host_store_id=resolution.host_store_id,
            correlation_id=correlation_id,
        )
        return resolution, context

    def visible_modules(self, ctx: TenantContext) -> list[str]:
        return list(get_access_policy().visible_modules(ctx.role, ctx.store_id))

    @staticmethod
    def _validate_store(payload: StoreCreate | dict[str, Any]) -> StoreCreate:
        if isinstance(payload, StoreCreate):
            return payload
        try:
            return StoreCreate.model_validate(payload)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc, subject="store") from exc

    @staticmethod
    def _require(ctx: TenantContext, action: Action, resource: str) -> None:
        scope = ctx.store_id or (ALL_STORES if ctx.is_admin else None)
        if not can_perform(ctx.role, action, scope, resource):
            raise AccessDenied(ctx.role, action.value, resource)


tenant_service = TenantService()
