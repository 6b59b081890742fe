"""
Record store abstraction over the hosted Postgres and an in-memory test implementation.

Both implementations expose the same table-oriented interface (insert, get,
select, update, delete) over the tables below. Rows are plain dicts.
"""

from __future__ import annotations

import copy
import itertools
import uuid
from contextlib import contextmanager
from typing import Any, ContextManager, Dict, Iterator, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError

from confdesk.errors import UpstreamFailure
from confdesk.models import utc_now_iso

metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("id", String, primary_key=True),
    Column("auth_id", String, nullable=True, index=True),
    Column("title", String, nullable=True),
    Column("full_name", String, nullable=False),
    Column("email", String, nullable=False, index=True),
    Column("phone", String, nullable=True),
    Column("affiliation", String, nullable=True),
    Column("designation", String, nullable=True),
    Column("address", Text, nullable=True),
    Column("country", String, nullable=True),
    Column("city", String, nullable=True),
    Column("category", String, nullable=True),
    Column("registration_fee", Float, nullable=False, default=0.0),
    Column("currency", String, nullable=False, default="INR"),
    Column("payment_completed", Boolean, nullable=False, default=False),
    Column("payment_method", String, nullable=True),
    Column("newsletter_subscribed", Boolean, nullable=False, default=False),
    Column("is_deleted", Boolean, nullable=False, default=False),
    Column("created_at", String, nullable=False),
)

papers_table = Table(
    "papers",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("user_name", String, nullable=True),
    Column("user_email", String, nullable=True),
    Column("paper_title", String, nullable=False),
    Column("abstract", Text, nullable=True),
    Column("keywords", JSON, nullable=True),
    Column("file_name", String, nullable=False),
    Column("file_url", String, nullable=False),
    Column("file_size_bytes", Integer, nullable=False),
    Column("status", String, nullable=False, index=True),
    Column("reviewed_by", String, nullable=True),
    Column("reviewer_name", String, nullable=True),
    Column("review_date", String, nullable=True),
    Column("review_comments", Text, nullable=True),
    Column("created_at", String, nullable=False),
)

payments_table = Table(
    "payments",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("user_email", String, nullable=True),
    Column("amount", Float, nullable=False),
    Column("currency", String, nullable=False),
    Column("category", String, nullable=True),
    Column("payment_method", String, nullable=True),
    Column("transaction_order_id", String, nullable=True, index=True),
    Column("transaction_payment_id", String, nullable=True),
    Column("transaction_signature", String, nullable=True),
    Column("status", String, nullable=False),
    Column("payment_date", String, nullable=True),
)

admins_table = Table(
    "admins",
    metadata,
    Column("id", String, primary_key=True),
    Column("auth_id", String, nullable=True, index=True),
    Column("full_name", String, nullable=False),
    Column("email", String, nullable=False),
    Column("role", String, nullable=False, default="admin"),
    Column("is_active", Boolean, nullable=False, default=True),
)

activity_logs_table = Table(
    "activity_logs",
    metadata,
    Column("id", String, primary_key=True),
    Column("admin_id", String, nullable=True),
    Column("actor_email", String, nullable=True),
    Column("actor_role", String, nullable=True),
    Column("action_type", String, nullable=False, index=True),
    Column("action_description", Text, nullable=True),
    Column("target_table", String, nullable=True),
    Column("target_id", String, nullable=True),
    Column("new_data", JSON, nullable=True),
    Column("created_at", String, nullable=False),
)

email_notifications_table = Table(
    "email_notifications",
    metadata,
    Column("id", String, primary_key=True),
    Column("recipient_email", String, nullable=False),
    Column("recipient_name", String, nullable=True),
    Column("subject", String, nullable=False),
    Column("body", Text, nullable=False),
    Column("type", String, nullable=False),
    Column("status", String, nullable=False),
    Column("sent_at", String, nullable=True),
)

# Columns the store fills with the insert time when the caller leaves them out.
TIMESTAMP_COLUMNS = {
    "users": "created_at",
    "papers": "created_at",
    "activity_logs": "created_at",
    "email_notifications": "sent_at",
}


class RecordStore(Protocol):
    """Interface for table-oriented record access."""

    def insert(self, table: str, row: dict) -> dict:
        ...

    def get(self, table: str, record_id: str) -> Optional[dict]:
        ...

    def select(
        self,
        table: str,
        *,
        filters: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        ...

    def update(self, table: str, record_id: str, values: dict) -> Optional[dict]:
        ...

    def delete(self, table: str, record_id: str) -> bool:
        ...

    def delete_where(self, table: str, filters: Optional[dict] = None) -> int:
        ...

    def atomic(self) -> ContextManager["RecordStore"]:
        ...


def _table(name: str) -> Table:
    table = metadata.tables.get(name)
    if table is None:
        raise UpstreamFailure(f"Unknown table '{name}'")
    return table


def _check_columns(table: Table, values: dict) -> None:
    unknown = set(values) - set(table.columns.keys())
    if unknown:
        raise UpstreamFailure(
            f"Unknown column(s) for {table.name}: {', '.join(sorted(unknown))}"
        )


def _prepare_row(table: Table, row: dict) -> dict:
    _check_columns(table, row)
    prepared: dict[str, Any] = {}
    for column in table.columns:
        if column.name in row:
            prepared[column.name] = row[column.name]
        elif column.default is not None:
            prepared[column.name] = column.default.arg
        else:
            prepared[column.name] = None
    if not prepared.get("id"):
        prepared["id"] = uuid.uuid4().hex
    ts_column = TIMESTAMP_COLUMNS.get(table.name)
    if ts_column and not prepared.get(ts_column):
        prepared[ts_column] = utc_now_iso()
    return prepared


class InMemoryRecordStore:
    """Simple in-memory record store for development and tests."""

    def __init__(self):
        self.tables: Dict[str, Dict[str, dict]] = {
            name: {} for name in metadata.tables
        }
        self._order: Dict[str, int] = {}
        self._counter = itertools.count()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        for rows in self.tables.values():
            rows.clear()
        self._order.clear()

    def insert(self, table: str, row: dict) -> dict:
        prepared = _prepare_row(_table(table), row)
        rows = self.tables[table]
        if prepared["id"] in rows:
            raise UpstreamFailure(f"Duplicate key {prepared['id']} in {table}")
        rows[prepared["id"]] = prepared
        self._order[prepared["id"]] = next(self._counter)
        return dict(prepared)

    def get(self, table: str, record_id: str) -> Optional[dict]:
        _table(table)
        row = self.tables[table].get(record_id)
        return dict(row) if row else None

    def select(
        self,
        table: str,
        *,
        filters: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        definition = _table(table)
        filters = filters or {}
        _check_columns(definition, filters)
        rows = [
            dict(row)
            for row in self.tables[table].values()
            if all(row.get(key) == value for key, value in filters.items())
        ]
        if order_by:
            _check_columns(definition, {order_by: None})
            rows.sort(
                key=lambda row: (row.get(order_by) or "", self._order.get(row["id"], 0)),
                reverse=descending,
            )
        if limit is not None:
            rows = rows[:limit]
        return rows

    def update(self, table: str, record_id: str, values: dict) -> Optional[dict]:
        _check_columns(_table(table), values)
        row = self.tables[table].get(record_id)
        if not row:
            return None
        row.update(values)
        return dict(row)

    def delete(self, table: str, record_id: str) -> bool:
        _table(table)
        removed = self.tables[table].pop(record_id, None)
        self._order.pop(record_id, None)
        return removed is not None

    def delete_where(self, table: str, filters: Optional[dict] = None) -> int:
        matching = self.select(table, filters=filters)
        for row in matching:
            self.delete(table, row["id"])
        return len(matching)

    @contextmanager
    def atomic(self) -> Iterator["InMemoryRecordStore"]:
        snapshot = copy.deepcopy(self.tables)
        order_snapshot = dict(self._order)
        try:
            yield self
        except BaseException:
            self.tables = snapshot
            self._order = order_snapshot
            raise


class SqlRecordStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (the hosted Postgres, or SQLite for tests).
    """

    def __init__(self, database_url: str, *, create_tables: bool = True):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlRecordStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self._connection = None
        if create_tables:
            metadata.create_all(self.engine)

    @contextmanager
    def _connect(self):
        if self._connection is not None:
            yield self._connection
            return
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise UpstreamFailure(f"Record store error: {exc}") from exc

    def _bound(self, conn) -> "SqlRecordStore":
        bound = object.__new__(SqlRecordStore)
        bound.engine = self.engine
        bound._connection = conn
        return bound

    @staticmethod
    def _where(table: Table, stmt, filters: Optional[dict]):
        filters = filters or {}
        _check_columns(table, filters)
        for key, value in filters.items():
            column = table.c[key]
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        return stmt

    def insert(self, table: str, row: dict) -> dict:
        definition = _table(table)
        prepared = _prepare_row(definition, row)
        with self._connect() as conn:
            conn.execute(insert(definition).values(**prepared))
        return prepared

    def get(self, table: str, record_id: str) -> Optional[dict]:
        definition = _table(table)
        with self._connect() as conn:
            row = conn.execute(
                select(definition).where(definition.c.id == record_id)
            ).mappings().first()
            return dict(row) if row else None

    def select(
        self,
        table: str,
        *,
        filters: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        definition = _table(table)
        stmt = self._where(definition, select(definition), filters)
        if order_by:
            _check_columns(definition, {order_by: None})
            column = definition.c[order_by]
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings().all()]

    def update(self, table: str, record_id: str, values: dict) -> Optional[dict]:
        definition = _table(table)
        _check_columns(definition, values)
        with self._connect() as conn:
            result = conn.execute(
                update(definition).where(definition.c.id == record_id).values(**values)
            )
            if not result.rowcount:
                return None
            row = conn.execute(
                select(definition).where(definition.c.id == record_id)
            ).mappings().first()
            return dict(row) if row else None

    def delete(self, table: str, record_id: str) -> bool:
        definition = _table(table)
        with self._connect() as conn:
            result = conn.execute(delete(definition).where(definition.c.id == record_id))
            return bool(result.rowcount)

    def delete_where(self, table: str, filters: Optional[dict] = None) -> int:
        definition = _table(table)
        stmt = self._where(definition, delete(definition), filters)
        with self._connect() as conn:
            return conn.execute(stmt).rowcount or 0

    @contextmanager
    def atomic(self) -> Iterator["SqlRecordStore"]:
        if self._connection is not None:
            yield self
            return
        with self._connect() as conn:
            yield self._bound(conn)
