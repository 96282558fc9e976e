"""Schema Manager: structures and fields kept in step with their physical tables.

Metadata lives in the ``ahoi_api_structures`` / ``ahoi_api_fields`` tables;
every change to it is paired with the matching DDL through
:class:`~ahoi.storage.tables.DataTableManager`. DDL statements commit on their
own, so each operation orders its steps and compensates explicitly when the
second step fails.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ahoi.core.types import FieldInfo, FieldSpec, FieldType, StructureInfo
from ahoi.exceptions import (
    DuplicateFieldSlug,
    DuplicateSlug,
    FieldNotFound,
    InvalidFieldType,
    InvalidSlug,
    ReservedKeyword,
    StorageError,
    StructureNotFound,
    ValidationError,
)
from ahoi.schema import type_mapper
from ahoi.schema.models import Base, Field, Structure
from ahoi.storage.tables import BASE_COLUMNS, DataTableManager, table_name_for

if TYPE_CHECKING:
    from ahoi.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)

STRUCTURE_SLUG_RE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
FIELD_SLUG_RE = re.compile(r"^[a-z][a-z0-9_]*$")
MAX_SLUG_LENGTH = 64
MAX_NAME_LENGTH = 100

RESERVED_KEYWORDS = frozenset(
    """
    select insert update delete where from table database text longtext int
    integer varchar char decimal float key primary index foreign order group
    by as on date datetime timestamp boolean true false null
    """.split()
)

# Static routes of the REST namespace
RESERVED_STRUCTURE_SLUGS = frozenset({"token", "register", "users", "roles", "storage", "notifications"})


def normalize_structure_slug(slug: str) -> str:
    """Validate a structure slug and return it lowercased.

    Raises:
        InvalidSlug: If the slug is malformed, too long or shadows a static route
    """
    candidate = (slug or "").strip().lower()
    if not candidate or len(candidate) > MAX_SLUG_LENGTH:
        raise InvalidSlug(candidate, f"must be 1-{MAX_SLUG_LENGTH} characters long")
    if not STRUCTURE_SLUG_RE.match(candidate):
        raise InvalidSlug(candidate, "use lowercase letters, digits and single hyphens")
    if candidate in RESERVED_STRUCTURE_SLUGS:
        raise InvalidSlug(candidate, "this name is used by a built-in endpoint")
    return candidate


def normalize_field_slug(slug: str) -> str:
    """Validate a field slug and return it in column form (hyphens become underscores).

    Raises:
        ReservedKeyword: If the slug is a reserved SQL keyword
        InvalidSlug: If the slug is malformed or shadows a base column
    """
    candidate = (slug or "").strip().lower().replace("-", "_")
    if candidate in RESERVED_KEYWORDS:
        raise ReservedKeyword(candidate)
    if not candidate or len(candidate) > MAX_SLUG_LENGTH:
        raise InvalidSlug(candidate, f"must be 1-{MAX_SLUG_LENGTH} characters long")
    if not FIELD_SLUG_RE.match(candidate):
        raise InvalidSlug(candidate, "start with a letter; use lowercase letters, digits and underscores")
    if candidate in BASE_COLUMNS:
        raise InvalidSlug(candidate, "this column is managed automatically")
    return candidate


def validate_field_type(field_type: str) -> FieldType:
    try:
        return FieldType(field_type)
    except ValueError as e:
        raise InvalidFieldType(str(field_type), FieldType.values()) from e


def _validate_name(name: str, what: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(f"{what} name is required.")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(f"{what} name must be at most {MAX_NAME_LENGTH} characters.")
    return cleaned


def field_info(field: Field) -> FieldInfo:
    return FieldInfo(
        id=field.id,
        name=field.name,
        slug=field.slug,
        type=field.type,
        is_required=field.is_required,
        default_value=field.default_value,
    )


class SchemaManager:
    """Manages structure and field definitions and their physical tables.

    DDL for one structure slug is serialized by a per-slug lock; different
    slugs proceed independently.
    """

    def __init__(self, connection: DatabaseConnection, table_prefix: str = "ahoi_data_") -> None:
        """Initialize the schema manager.

        Args:
            connection: Database connection to use
            table_prefix: Prefix for physical structure tables
        """
        self._connection = connection
        self._table_prefix = table_prefix
        self._tables = DataTableManager(connection.engine)
        self._initialized = False
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def tables(self) -> DataTableManager:
        return self._tables

    def initialize(self) -> None:
        """Create meta-tables if they don't exist."""
        if not self._initialized:
            Base.metadata.create_all(self._connection.engine)
            self._initialized = True

    def _get_session(self) -> Session:
        return self._connection.get_session()

    @contextmanager
    def _slug_lock(self, slug: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(slug, threading.Lock())
        with lock:
            yield

    def table_name(self, slug: str) -> str:
        return table_name_for(slug, self._table_prefix)

    def _load(self, session: Session, slug: str) -> Structure:
        structure = session.scalars(
            select(Structure).options(selectinload(Structure.fields)).where(Structure.slug == slug)
        ).first()
        if structure is None:
            available = list(session.scalars(select(Structure.slug).order_by(Structure.slug)))
            raise StructureNotFound(slug, available)
        return structure

    def _info(self, structure: Structure, record_count: int | None = None) -> StructureInfo:
        return StructureInfo(
            id=structure.id,
            name=structure.name,
            slug=structure.slug,
            table_name=self.table_name(structure.slug),
            description=structure.description,
            fields=[field_info(f) for f in structure.fields],
            record_count=record_count,
            created_at=structure.created_at,
        )

    # === Read side ===

    def list_slugs(self) -> list[str]:
        self.initialize()
        with self._get_session() as session:
            return list(session.scalars(select(Structure.slug).order_by(Structure.slug)))

    def list_structures(self) -> list[StructureInfo]:
        """List all structures with their fields."""
        self.initialize()
        with self._get_session() as session:
            structures = session.scalars(
                select(Structure).options(selectinload(Structure.fields)).order_by(Structure.slug)
            ).all()
            return [self._info(s) for s in structures]

    def get_structure(self, slug: str) -> Structure:
        """Get a structure with its fields loaded.

        Raises:
            StructureNotFound: If no structure uses the slug
        """
        self.initialize()
        with self._get_session() as session:
            return self._load(session, slug)

    def structure_exists(self, slug: str) -> bool:
        self.initialize()
        with self._get_session() as session:
            return session.scalars(select(Structure.id).where(Structure.slug == slug)).first() is not None

    def describe_structure(self, slug: str) -> StructureInfo:
        """Structure metadata, fields and current row count."""
        structure = self.get_structure(slug)
        table_name = self.table_name(slug)
        count = self._tables.get_row_count(table_name) if self._tables.table_exists(table_name) else None
        return self._info(structure, record_count=count)

    def get_fields(self, slug: str) -> list[Field]:
        return list(self.get_structure(slug).fields)

    def storage_columns(self, slug: str) -> list[str]:
        """Columns of the physical table backing a structure."""
        self.get_structure(slug)
        return self._tables.column_names(self.table_name(slug))

    # === Structures ===

    def create_structure(
        self,
        name: str,
        slug: str,
        description: str | None = None,
        fields: list[FieldSpec] | list[dict[str, Any]] | None = None,
    ) -> StructureInfo:
        """Create a structure and its table, optionally with initial fields.

        The metadata row is committed first; if the table cannot be created it
        is deleted again and StorageError is raised.

        Raises:
            InvalidSlug: If the slug is malformed or reserved
            DuplicateSlug: If the slug is taken
            StorageError: If the table cannot be created
        """
        self.initialize()
        name = _validate_name(name, "Structure")
        slug = normalize_structure_slug(slug)
        specs = [f if isinstance(f, FieldSpec) else FieldSpec(**f) for f in fields or []]
        new_fields = self._prepare_fields(specs, slug)

        with self._slug_lock(slug):
            with self._get_session() as session:
                if session.scalars(select(Structure.id).where(Structure.slug == slug)).first():
                    raise DuplicateSlug(slug)
                structure = Structure(name=name, slug=slug, description=description, fields=new_fields)
                session.add(structure)
                session.commit()
                structure_id = structure.id

            table_name = self.table_name(slug)
            try:
                self._tables.create_table(table_name, new_fields)
            except Exception as e:
                logger.error(f"Creating table {table_name} failed: {e}")
                self._delete_structure_row(structure_id)
                raise StorageError(f"Could not create the table for '{slug}'.") from e

        logger.info(f"Created structure '{slug}' with {len(new_fields)} field(s)")
        return self.describe_structure(slug)

    def _prepare_fields(self, specs: list[FieldSpec], structure_slug: str) -> list[Field]:
        seen: set[str] = set()
        result = []
        for spec in specs:
            field_slug = normalize_field_slug(spec.slug)
            if field_slug in seen:
                raise DuplicateFieldSlug(field_slug, structure_slug)
            seen.add(field_slug)
            field_type = validate_field_type(spec.type)
            if spec.default_value is not None:
                type_mapper.coerce(field_type, spec.default_value)
            result.append(
                Field(
                    name=_validate_name(spec.name, "Field"),
                    slug=field_slug,
                    type=field_type.value,
                    is_required=spec.is_required,
                    default_value=spec.default_value,
                )
            )
        return result

    def _delete_structure_row(self, structure_id: int) -> None:
        with self._get_session() as session:
            structure = session.get(Structure, structure_id)
            if structure is not None:
                session.delete(structure)
                session.commit()
                logger.info(f"Removed metadata for structure {structure_id} after failed DDL")

    def delete_structure(self, slug: str) -> None:
        """Drop a structure's table and delete its metadata and fields.

        Raises:
            StructureNotFound: If no structure uses the slug
            StorageError: If the table cannot be dropped
        """
        structure = self.get_structure(slug)
        table_name = self.table_name(slug)
        with self._slug_lock(slug):
            try:
                self._tables.drop_table(table_name)
            except Exception as e:
                logger.error(f"Dropping table {table_name} failed: {e}")
                raise StorageError(f"Could not drop the table for '{slug}'.") from e
            self._delete_structure_row(structure.id)
        logger.info(f"Deleted structure '{slug}'")

    # === Fields ===

    def add_field(
        self,
        slug: str,
        name: str,
        field_slug: str,
        type: str = FieldType.TEXT_SHORT,
        is_required: bool = False,
        default_value: str | None = None,
    ) -> FieldInfo:
        """Add a field and its column.

        The column is added first; the metadata row is only written once the
        DDL succeeded. If that write fails the column is dropped again.

        Raises:
            StructureNotFound: If no structure uses the slug
            ReservedKeyword: If the field slug is a reserved keyword
            InvalidSlug: If the field slug is malformed
            InvalidFieldType: If the type is unknown
            DuplicateFieldSlug: If the structure already has the field
            StorageError: If the DDL fails
        """
        [field] = self._prepare_fields(
            [FieldSpec(name=name, slug=field_slug, type=validate_field_type(type), is_required=is_required,
                       default_value=default_value)],
            slug,
        )

        with self._slug_lock(slug):
            structure = self.get_structure(slug)
            table_name = self.table_name(structure.slug)
            if any(f.slug == field.slug for f in structure.fields):
                raise DuplicateFieldSlug(field.slug, slug)

            try:
                self._tables.add_column(table_name, field)
            except Exception as e:
                logger.error(f"Adding column {field.slug} to {table_name} failed: {e}")
                raise StorageError(f"Could not add the column '{field.slug}'.") from e

            try:
                with self._get_session() as session:
                    field.structure_id = structure.id
                    session.add(field)
                    session.commit()
            except Exception as e:
                logger.error(f"Saving field {field.slug} failed, dropping the column again: {e}")
                try:
                    self._tables.drop_column(table_name, field.slug)
                except Exception as drop_error:
                    logger.error(f"Compensating drop of {table_name}.{field.slug} failed: {drop_error}")
                raise StorageError(f"Could not save the field '{field.slug}'.") from e

        logger.info(f"Added field '{field.slug}' ({field.type}) to '{slug}'")
        return field_info(field)

    def drop_field(self, slug: str, field_slug: str) -> None:
        """Drop a field's column, then delete its metadata row.

        Raises:
            StructureNotFound: If no structure uses the slug
            FieldNotFound: If the structure has no such field
            StorageError: If the DDL fails
        """
        column = (field_slug or "").strip().lower().replace("-", "_")
        with self._slug_lock(slug):
            structure = self.get_structure(slug)
            table_name = self.table_name(structure.slug)
            field = next((f for f in structure.fields if f.slug == column), None)
            if field is None:
                raise FieldNotFound(column, slug)

            try:
                self._tables.drop_column(table_name, column)
            except Exception as e:
                logger.error(f"Dropping column {column} from {table_name} failed: {e}")
                raise StorageError(f"Could not drop the column '{column}'.") from e

            with self._get_session() as session:
                row = session.get(Field, field.id)
                if row is not None:
                    session.delete(row)
                    session.commit()

        logger.info(f"Dropped field '{column}' from '{slug}'")

    # === Lifecycle ===

    def uninstall(self) -> list[str]:
        """Drop every structure table and all meta-tables.

        Returns:
            The dropped data table names
        """
        self.initialize()
        dropped = []
        for slug in self.list_slugs():
            table_name = self.table_name(slug)
            self._tables.drop_table(table_name)
            dropped.append(table_name)
        Base.metadata.drop_all(self._connection.engine)
        self._initialized = False
        logger.warning(f"Uninstalled: dropped {len(dropped)} data table(s) and the meta-tables")
        return dropped
