"""Physical table management for structures.

Each structure owns one table with the base columns ``id``, ``owner_id``,
``created_at`` and ``updated_at`` plus one column per field. The same
:func:`build_table` definition is used for DDL here and for DML in
:mod:`ahoi.data.query`, so both always agree on column types.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Table,
    inspect,
    select,
    text,
)
from sqlalchemy import func as sa_func
from sqlalchemy.schema import CreateColumn

from ahoi.schema import type_mapper

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import Engine

    from ahoi.schema.models import Field

logger = logging.getLogger(__name__)

BASE_COLUMNS = ("id", "owner_id", "created_at", "updated_at")


def is_row_id(value: int) -> bool:
    """Whether a value fits an auto-increment id column (a positive signed 64-bit integer)."""
    return 1 <= value <= type_mapper.INT64_MAX

# Only validated slugs reach this module; anything else is refused
_IDENTIFIER_RE = re.compile(r"^[a-z][a-z0-9_]*$")


def safe_identifier(name: str) -> str:
    """Return ``name`` if it is a plain lowercase identifier, else raise ValueError."""
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Unsafe identifier: {name!r}")
    return name


def table_name_for(slug: str, prefix: str = "ahoi_data_") -> str:
    """Physical table name for a structure slug (``movies`` -> ``ahoi_data_movies``)."""
    return safe_identifier(f"{prefix}{slug.replace('-', '_')}")


def field_column(field: Field, *, with_default: bool = False) -> Column[Any]:
    """Build the column for a field definition."""
    kwargs: dict[str, Any] = {"nullable": not field.is_required}
    if field.is_required and with_default:
        kwargs["server_default"] = type_mapper.default_literal(field.type, field.default_value)
    return Column(safe_identifier(field.slug), type_mapper.storage_type(field.type), **kwargs)


def build_table(table_name: str, fields: Iterable[Field], metadata: MetaData | None = None) -> Table:
    """Build the Core ``Table`` for a structure from its field definitions."""
    columns: list[Column[Any]] = [
        Column("id", BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True),
        Column("owner_id", BigInteger, nullable=True),
        Column("created_at", DateTime, nullable=False),
        Column("updated_at", DateTime, nullable=False),
    ]
    columns.extend(field_column(field) for field in fields)
    return Table(
        safe_identifier(table_name),
        metadata if metadata is not None else MetaData(),
        *columns,
        Index(f"ix_{table_name}_owner_id", "owner_id"),
    )


class DataTableManager:
    """Runs the DDL that keeps structure tables in step with field metadata."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._is_postgresql = engine.dialect.name == "postgresql"

    @property
    def engine(self) -> Engine:
        return self._engine

    def _quote(self, name: str) -> str:
        return self._engine.dialect.identifier_preparer.quote(safe_identifier(name))

    def create_table(self, table_name: str, fields: Iterable[Field] = ()) -> None:
        """Create a structure table with its base columns and the given fields."""
        table = build_table(table_name, fields)
        logger.info(f"Creating table {table_name}")
        with self._engine.begin() as conn:
            table.create(conn)

    def add_column(self, table_name: str, field: Field) -> None:
        """``ALTER TABLE ... ADD COLUMN`` for a new field.

        Required fields get ``NOT NULL`` with a server default so existing
        rows are backfilled.
        """
        column = field_column(field, with_default=True)
        # Bind the column to a throwaway table so CreateColumn can compile it
        Table(safe_identifier(table_name), MetaData(), column)
        column_sql = CreateColumn(column).compile(dialect=self._engine.dialect)
        statement = f"ALTER TABLE {self._quote(table_name)} ADD COLUMN {column_sql}"
        logger.info(statement)
        with self._engine.begin() as conn:
            conn.execute(text(statement))

    def drop_column(self, table_name: str, column_name: str) -> None:
        """``ALTER TABLE ... DROP COLUMN``."""
        statement = f"ALTER TABLE {self._quote(table_name)} DROP COLUMN {self._quote(column_name)}"
        logger.info(statement)
        with self._engine.begin() as conn:
            conn.execute(text(statement))

    def drop_table(self, table_name: str) -> None:
        """``DROP TABLE IF EXISTS``."""
        statement = f"DROP TABLE IF EXISTS {self._quote(table_name)}"
        if self._is_postgresql:
            statement += " CASCADE"
        logger.info(statement)
        with self._engine.begin() as conn:
            conn.execute(text(statement))

    def table_exists(self, table_name: str) -> bool:
        return inspect(self._engine).has_table(table_name)

    def column_names(self, table_name: str) -> list[str]:
        """Column names of the physical table, in table order."""
        return [column["name"] for column in inspect(self._engine).get_columns(table_name)]

    def get_row_count(self, table_name: str) -> int:
        table = Table(safe_identifier(table_name), MetaData())
        with self._engine.connect() as conn:
            result = conn.execute(select(sa_func.count()).select_from(table))
            return result.scalar() or 0
