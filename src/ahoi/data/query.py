"""Generic row mapper for structure tables.

One :class:`RecordQuery` per structure builds SQLAlchemy Core statements from
the structure's field metadata. All values are bound parameters; column names
come only from field slugs.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from ahoi.core.types import ListQuery
from ahoi.exceptions import StorageError, ValidationError
from ahoi.schema import type_mapper
from ahoi.storage.tables import BASE_COLUMNS, build_table, is_row_id

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import Engine, Table
    from sqlalchemy.sql import Select

    from ahoi.auth.policy import RowScope
    from ahoi.schema.models import Field

logger = logging.getLogger(__name__)


class RecordQuery:
    """CRUD statements against one structure table."""

    def __init__(self, engine: Engine, table_name: str, structure_slug: str, fields: Iterable[Field]) -> None:
        """Initialize the row mapper.

        Args:
            engine: SQLAlchemy engine
            table_name: Physical table of the structure
            structure_slug: Structure slug (for error messages)
            fields: Field definitions of the structure
        """
        self._engine = engine
        self._structure_slug = structure_slug
        self._fields = {f.slug: f for f in fields}
        self._table: Table = build_table(table_name, self._fields.values())

    @property
    def table(self) -> Table:
        return self._table

    @property
    def sortable_columns(self) -> list[str]:
        return [*BASE_COLUMNS, *self._fields]

    def _scoped(self, statement: Any, scope: RowScope | None) -> Any:
        if scope is not None and scope.is_scoped:
            statement = statement.where(self._table.c.owner_id == scope.owner_id)
        return statement

    def _row_to_dict(self, row: Any) -> dict[str, Any]:
        mapping = row._mapping
        record: dict[str, Any] = {name: type_mapper.present_value(mapping[name]) for name in BASE_COLUMNS}
        for slug, field in self._fields.items():
            record[slug] = type_mapper.present(field.type, mapping[slug])
        return record

    def _fail(self, action: str, error: Exception) -> StorageError:
        logger.error(f"{action} on {self._table.name} failed: {error}")
        return StorageError(f"Could not {action} the item.")

    def coerce_filters(self, raw: dict[str, Any]) -> dict[str, Any]:
        """Keep filters on declared fields and coerce their values.

        Raises:
            ValidationError: If a filter value does not fit its field type
        """
        filters: dict[str, Any] = {}
        errors: dict[str, str] = {}
        for key, value in raw.items():
            field = self._fields.get(key)
            if field is None:
                continue
            try:
                filters[key] = type_mapper.coerce(field.type, value)
            except ValidationError as e:
                errors[key] = e.message
        if errors:
            raise ValidationError("Invalid filter values.", field_errors=errors)
        return filters

    def build_select(self, query: ListQuery, scope: RowScope | None = None) -> Select[Any]:
        statement = self._scoped(select(self._table), scope)
        for key, value in self.coerce_filters(query.filters).items():
            column = self._table.c[key]
            statement = statement.where(column.is_(None) if value is None else column == value)
        sort = query.sort if query.sort in self.sortable_columns else "id"
        column = self._table.c[sort]
        statement = statement.order_by(column.desc() if query.order == "desc" else column.asc())
        return statement.limit(query.limit).offset(query.offset)

    def find(self, query: ListQuery, scope: RowScope | None = None) -> list[dict[str, Any]]:
        """Filtered, sorted and paginated records."""
        statement = self.build_select(query, scope)
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(statement).fetchall()
        except SQLAlchemyError as e:
            raise self._fail("list", e) from e
        return [self._row_to_dict(row) for row in rows]

    def find_by_id(self, record_id: int, scope: RowScope | None = None) -> dict[str, Any] | None:
        if not is_row_id(record_id):
            return None
        statement = self._scoped(select(self._table).where(self._table.c.id == record_id), scope)
        try:
            with self._engine.connect() as conn:
                row = conn.execute(statement).first()
        except SQLAlchemyError as e:
            raise self._fail("read", e) from e
        return self._row_to_dict(row) if row is not None else None

    def insert(self, values: dict[str, Any]) -> int:
        """Insert a row and return its id."""
        try:
            with self._engine.begin() as conn:
                result = conn.execute(insert(self._table).values(**values))
                return int(result.inserted_primary_key[0])
        except SQLAlchemyError as e:
            raise self._fail("create", e) from e

    def update(self, record_id: int, values: dict[str, Any], scope: RowScope | None = None) -> int:
        """Update one row by id (and owner when scoped); returns the affected row count."""
        if not is_row_id(record_id):
            return 0
        statement = self._scoped(update(self._table).where(self._table.c.id == record_id), scope)
        try:
            with self._engine.begin() as conn:
                return conn.execute(statement.values(**values)).rowcount
        except SQLAlchemyError as e:
            raise self._fail("update", e) from e

    def delete(self, record_id: int, scope: RowScope | None = None) -> int:
        if not is_row_id(record_id):
            return 0
        statement = self._scoped(delete(self._table).where(self._table.c.id == record_id), scope)
        try:
            with self._engine.begin() as conn:
                return conn.execute(statement).rowcount
        except SQLAlchemyError as e:
            raise self._fail("delete", e) from e

