from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from datetime import datetime, timezone
from typing import Any, Protocol, TypeVar

from opentelemetry import trace
from pydantic_core import to_jsonable_python
from sqlalchemy import JSON, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from kitchenunity.otel import store_span
from kitchenunity.platform.security.scope import apply_store_filter, store_filter_value
from kitchenunity.records.errors import ConcurrencyConflict, PersistenceError, RecordNotFound


logger = logging.getLogger("kitchenunity.records.gateway")
tracer = trace.get_tracer("kitchenunity.records.gateway")

Row = dict[str, Any]
T = TypeVar("T")

PROTECTED_COLUMNS = frozenset({"id", "store_id", "created_at", "updated_at", "row_version"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordGateway(Protocol):
    """Store of record for one entity kind; every row is keyed by ``store_id``."""

    kind: str

    async def list(self, store_id: str) -> list[Row]:
        ...

    async def get(self, entity_id: str, *, store_id: str | None = None) -> Row:
        ...

    async def create(self, row: Row) -> Row:
        ...

    async def update(self, entity_id: str, partial: Row, *, expected_version: int, store_id: str | None = None) -> int:
        ...

    async def delete(self, entity_id: str, *, store_id: str | None = None) -> None:
        ...


def _gateway_span(kind: str, operation: str, store_id: str | None) -> AbstractContextManager[trace.Span]:
    return store_span(tracer, f"records.{kind}.{operation}", store_id)


def _scope_filter(store_id: str | None) -> str | None:
    if store_id is None:
        return None
    return store_filter_value(store_id)


class SqlRecordGateway:
    """SQLAlchemy-backed gateway; sync ORM work runs in the Starlette threadpool.

    Gateways built over one shared ``Session`` must share one ``lock`` since a
    session is not safe for concurrent use.
    """

    def __init__(
        self,
        kind: str,
        model: Any,
        *,
        session: Session | None = None,
        session_factory: sessionmaker[Session] | None = None,
        lock: threading.Lock | None = None,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> None:
        if session is None and session_factory is None:
            from kitchenunity.core.database import SessionLocal

            session_factory = SessionLocal
        self.kind = kind
        self.model = model
        self.order_by = order_by
        self.descending = descending
        self._session = session
        self._session_factory = session_factory
        self._lock = lock or threading.Lock()
        self._columns = {column.key: column for column in model.__table__.columns}

    async def list(self, store_id: str) -> list[Row]:
        store_filter_value(store_id)
        return await self._call("list", store_id, lambda session: self._list(session, store_id))

    async def get(self, entity_id: str, *, store_id: str | None = None) -> Row:
        scope = _scope_filter(store_id)
        return await self._call("get", store_id, lambda session: self._to_row(self._load(session, entity_id, scope)))

    async def create(self, row: Row) -> Row:
        values = self._writable(row, allow_protected={"id", "store_id"})
        return await self._call("create", row.get("store_id"), lambda session: self._create(session, values))

    async def update(self, entity_id: str, partial: Row, *, expected_version: int, store_id: str | None = None) -> int:
        scope = _scope_filter(store_id)
        values = self._writable(partial)
        return await self._call(
            "update",
            store_id,
            lambda session: self._update(session, entity_id, values, expected_version, scope),
        )

    async def delete(self, entity_id: str, *, store_id: str | None = None) -> None:
        scope = _scope_filter(store_id)
        await self._call("delete", store_id, lambda session: self._delete(session, entity_id, scope))

    async def _call(self, operation: str, store_id: str | None, work: Callable[[Session], T]) -> T:
        with _gateway_span(self.kind, operation, store_id) as span:
            try:
                return await run_in_threadpool(self._run, work)
            except SQLAlchemyError as exc:
                span.record_exception(exc)
                logger.warning(
                    "records.gateway_failed",
                    extra={"entity_kind": self.kind, "operation": operation, "store_id": store_id, "error": str(exc)},
                )
                raise PersistenceError(f"{self.kind} {operation} failed") from exc

    def _run(self, work: Callable[[Session], T]) -> T:
        with self._lock:
            if self._session is not None:
                return self._in_session(self._session, work)
            assert self._session_factory is not None
            with self._session_factory() as session:
                return self._in_session(session, work)

    @staticmethod
    def _in_session(session: Session, work: Callable[[Session], T]) -> T:
        try:
            return work(session)
        except Exception:
            session.rollback()
            raise

    def _list(self, session: Session, store_id: str) -> list[Row]:
        query = apply_store_filter(select(self.model), self.model, store_id)
        order_column = getattr(self.model, self.order_by)
        query = query.order_by(order_column.desc() if self.descending else order_column.asc())
        return [self._to_row(item) for item in session.scalars(query).all()]

    def _load(self, session: Session, entity_id: str, scope: str | None) -> Any:
        query = select(self.model).where(self.model.id == entity_id)
        if scope is not None:
            query = query.where(self.model.store_id == scope)
        item = session.scalar(query)
        if item is None:
            raise RecordNotFound(self.kind, entity_id)
        return item

    def _create(self, session: Session, values: Row) -> Row:
        now = utcnow()
        item = self.model(
            **{
                **values,
                "id": values.get("id") or str(uuid.uuid4()),
                "created_at": now,
                "updated_at": now,
                "row_version": 1,
            }
        )
        session.add(item)
        session.commit()
        session.refresh(item)
        return self._to_row(item)

    def _update(self, session: Session, entity_id: str, values: Row, expected_version: int, scope: str | None) -> int:
        statement = update(self.model).where(self.model.id == entity_id, self.model.row_version == expected_version)
        if scope is not None:
            statement = statement.where(self.model.store_id == scope)
        statement = statement.values(**values, row_version=self.model.row_version + 1, updated_at=utcnow())
        result = session.execute(statement.execution_options(synchronize_session=False))
        if result.rowcount == 0:
            session.rollback()
            self._load(session, entity_id, scope)
            raise ConcurrencyConflict(self.kind, entity_id, expected_version)
        session.commit()
        return expected_version + 1

    def _delete(self, session: Session, entity_id: str, scope: str | None) -> None:
        statement = delete(self.model).where(self.model.id == entity_id)
        if scope is not None:
            statement = statement.where(self.model.store_id == scope)
        result = session.execute(statement.execution_options(synchronize_session=False))
        if result.rowcount == 0:
            session.rollback()
            raise RecordNotFound(self.kind, entity_id)
        session.commit()

    def _writable(self, row: Row, *, allow_protected: Iterable[str] = ()) -> Row:
        allowed_protected = set(allow_protected)
        values: Row = {}
        for key, value in row.items():
            column = self._columns.get(key)
            if column is None or (key in PROTECTED_COLUMNS and key not in allowed_protected):
                raise PersistenceError(f"{self.kind} has no writable column '{key}'")
            values[key] = to_jsonable_python(value) if isinstance(column.type, JSON) else value
        return values

    def _to_row(self, item: Any) -> Row:
        return {key: getattr(item, key) for key in self._columns}


class InMemoryRecordGateway:
    """Dict-backed gateway with the same contract, used for local runs and tests."""

    def __init__(self, kind: str, *, order_by: str = "created_at", descending: bool = True) -> None:
        self.kind = kind
        self.order_by = order_by
        self.descending = descending
        self._rows: dict[str, Row] = {}

    def seed(self, rows: Iterable[Row]) -> None:
        for row in rows:
            now = utcnow()
            stored = {"created_at": now, "updated_at": now, "row_version": 1, **copy.deepcopy(row)}
            stored.setdefault("id", str(uuid.uuid4()))
            self._rows[stored["id"]] = stored

    def clear(self) -> None:
        self._rows.clear()

    async def list(self, store_id: str) -> list[Row]:
        scope = store_filter_value(store_id)
        with _gateway_span(self.kind, "list", store_id):
            rows = [row for row in self._rows.values() if scope is None or row.get("store_id") == scope]
            rows.sort(key=lambda row: row[self.order_by], reverse=self.descending)
            return copy.deepcopy(rows)

    async def get(self, entity_id: str, *, store_id: str | None = None) -> Row:
        scope = _scope_filter(store_id)
        with _gateway_span(self.kind, "get", store_id):
            return copy.deepcopy(self._find(entity_id, scope))

    async def create(self, row: Row) -> Row:
        with _gateway_span(self.kind, "create", row.get("store_id")):
            unexpected = set(row) & (PROTECTED_COLUMNS - {"id", "store_id"})
            if unexpected:
                raise PersistenceError(f"{self.kind} has no writable column '{sorted(unexpected)[0]}'")
            now = utcnow()
            stored = copy.deepcopy(row)
            stored["id"] = row.get("id") or str(uuid.uuid4())
            if stored["id"] in self._rows:
                raise PersistenceError(f"{self.kind} '{stored['id']}' already exists")
            stored.update(created_at=now, updated_at=now, row_version=1)
            self._rows[stored["id"]] = stored
            return copy.deepcopy(stored)

    async def update(self, entity_id: str, partial: Row, *, expected_version: int, store_id: str | None = None) -> int:
        scope = _scope_filter(store_id)
        with _gateway_span(self.kind, "update", store_id):
            protected = set(partial) & PROTECTED_COLUMNS
            if protected:
                raise PersistenceError(f"{self.kind} has no writable column '{sorted(protected)[0]}'")
            current = self._find(entity_id, scope)
            if current["row_version"] != expected_version:
                raise ConcurrencyConflict(self.kind, entity_id, expected_version)
            current.update(copy.deepcopy(partial))
            current["row_version"] = expected_version + 1
            current["updated_at"] = utcnow()
            return current["row_version"]

    async def delete(self, entity_id: str, *, store_id: str | None = None) -> None:
        scope = _scope_filter(store_id)
        with _gateway_span(self.kind, "delete", store_id):
            self._find(entity_id, scope)
            del self._rows[entity_id]

    def _find(self, entity_id: str, scope: str | None) -> Row:
        row = self._rows.get(entity_id)
        if row is None or (scope is not None and row.get("store_id") != scope):
            raise RecordNotFound(self.kind, entity_id)
        return row
