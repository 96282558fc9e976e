"""Dynamic CRUD Engine.

Every record operation runs the same pipeline:
resolve structure -> authorize -> validate -> execute -> fire event -> respond.
Nothing here is specific to one structure; the table, columns and coercion
rules all come from field metadata at request time.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from ahoi.auth.policy import require_principal
from ahoi.core.types import ListQuery, Operation, ValidationMode
from ahoi.data.query import RecordQuery
from ahoi.data.validator import FieldValidator
from ahoi.events.dispatcher import ITEM_CREATED, ITEM_DELETED, ITEM_UPDATED
from ahoi.exceptions import NoUpdatableFields, RecordNotFound, StorageError
from ahoi.schema import type_mapper

if TYPE_CHECKING:
    from ahoi.auth.policy import AuthorizationEvaluator
    from ahoi.auth.principal import Principal
    from ahoi.events.dispatcher import EventDispatcher
    from ahoi.schema.engine import SchemaManager
    from ahoi.schema.models import Field

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (record columns carry no zone)."""
    return datetime.now(UTC).replace(tzinfo=None)


@dataclass(frozen=True)
class ResolvedStructure:
    """A structure with its fields and row mapper, loaded once per request."""

    id: int
    slug: str
    name: str
    table_name: str
    fields: tuple[Field, ...]
    query: RecordQuery

    @property
    def validator(self) -> FieldValidator:
        return FieldValidator(self.fields)


@dataclass
class StructureCache:
    """Request-scoped memo of resolved structures; discard it when the request ends."""

    entries: dict[str, ResolvedStructure] = field(default_factory=dict)

    def get(self, slug: str, loader: Callable[[str], ResolvedStructure]) -> ResolvedStructure:
        if slug not in self.entries:
            self.entries[slug] = loader(slug)
        return self.entries[slug]


def _parse_positive_int(value: Any) -> int | None:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class CrudEngine:
    """Serves list/get/create/update/delete for any structure."""

    def __init__(
        self,
        schema: SchemaManager,
        evaluator: AuthorizationEvaluator,
        dispatcher: EventDispatcher | None = None,
        default_page_size: int = 20,
        max_page_size: int = 100,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._schema = schema
        self._evaluator = evaluator
        self._dispatcher = dispatcher
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._clock = clock

    # === Resolution ===

    def _load(self, slug: str) -> ResolvedStructure:
        structure = self._schema.get_structure(slug)
        fields = tuple(structure.fields)
        table_name = self._schema.table_name(structure.slug)
        return ResolvedStructure(
            id=structure.id,
            slug=structure.slug,
            name=structure.name,
            table_name=table_name,
            fields=fields,
            query=RecordQuery(self._schema.tables.engine, table_name, structure.slug, fields),
        )

    def resolve_structure(self, slug: str, cache: StructureCache | None = None) -> ResolvedStructure:
        """Load a structure and its fields, memoized in ``cache`` when given.

        Raises:
            StructureNotFound: If no structure uses the slug
        """
        if cache is None:
            return self._load(slug)
        return cache.get(slug, self._load)

    def parse_list_query(self, params: Mapping[str, Any]) -> ListQuery:
        """Split query parameters into filters and ``_sort/_order/_limit/_page``.

        ``_limit`` is capped at the configured maximum page size; ``_page`` is
        capped so the row offset stays a 64-bit integer.
        """
        order = str(params.get("_order", "asc")).strip().lower()
        limit = min(_parse_positive_int(params.get("_limit")) or self._default_page_size, self._max_page_size)
        page = _parse_positive_int(params.get("_page")) or 1
        return ListQuery(
            filters={k: v for k, v in params.items() if not k.startswith("_")},
            sort=str(params.get("_sort") or "id"),
            order="desc" if order == "desc" else "asc",
            limit=limit,
            page=min(page, type_mapper.INT64_MAX // limit),
        )

    def _fire(self, event: str, slug: str, record: Mapping[str, Any]) -> None:
        if self._dispatcher is not None:
            self._dispatcher.fire(event, slug, record)

    # === Operations ===

    def list(
        self,
        slug: str,
        principal: Principal | None,
        params: Mapping[str, Any] | ListQuery | None = None,
        cache: StructureCache | None = None,
    ) -> list[dict[str, Any]]:
        """List records visible to the principal."""
        structure = self.resolve_structure(slug, cache)
        scope = self._evaluator.authorize(principal, Operation.LIST, structure.slug)
        query = params if isinstance(params, ListQuery) else self.parse_list_query(params or {})
        return structure.query.find(query, scope)

    def get(
        self,
        slug: str,
        principal: Principal | None,
        record_id: int,
        cache: StructureCache | None = None,
    ) -> dict[str, Any]:
        """Get one record.

        Raises:
            RecordNotFound: If the record does not exist or is outside the principal's scope
        """
        structure = self.resolve_structure(slug, cache)
        scope = self._evaluator.authorize(principal, Operation.GET, structure.slug)
        record = structure.query.find_by_id(record_id, scope)
        if record is None:
            raise RecordNotFound(record_id, structure.slug)
        return record

    def create(
        self,
        slug: str,
        principal: Principal | None,
        body: Any,
        cache: StructureCache | None = None,
    ) -> dict[str, Any]:
        """Validate and insert a record owned by the principal; fires ``item.created``."""
        structure = self.resolve_structure(slug, cache)
        creator = require_principal(principal)
        self._evaluator.authorize(creator, Operation.CREATE, structure.slug)
        values = structure.validator.validate(body, ValidationMode.CREATE)

        now = self._clock()
        values.update(owner_id=creator.id, created_at=now, updated_at=now)
        record_id = structure.query.insert(values)
        record = structure.query.find_by_id(record_id)
        if record is None:
            raise StorageError("The item was created but could not be read back.")

        logger.info(f"Created {structure.slug}/{record_id} for user {creator.id}")
        self._fire(ITEM_CREATED, structure.slug, record)
        return record

    def update(
        self,
        slug: str,
        principal: Principal | None,
        record_id: int,
        body: Any,
        cache: StructureCache | None = None,
    ) -> dict[str, Any]:
        """Apply a partial update; fires ``item.updated``.

        Raises:
            RecordNotFound: If the record is not visible to the principal
            NoUpdatableFields: If the body holds no declared field
        """
        structure = self.resolve_structure(slug, cache)
        scope = self._evaluator.authorize(principal, Operation.UPDATE, structure.slug)
        if structure.query.find_by_id(record_id, scope) is None:
            raise RecordNotFound(record_id, structure.slug)

        values = structure.validator.validate(body, ValidationMode.UPDATE)
        if not values:
            raise NoUpdatableFields()

        values["updated_at"] = self._clock()
        if structure.query.update(record_id, values, scope) == 0:
            raise RecordNotFound(record_id, structure.slug)
        record = structure.query.find_by_id(record_id, scope)
        if record is None:
            raise RecordNotFound(record_id, structure.slug)

        logger.info(f"Updated {structure.slug}/{record_id}")
        self._fire(ITEM_UPDATED, structure.slug, record)
        return record

    def delete(
        self,
        slug: str,
        principal: Principal | None,
        record_id: int,
        cache: StructureCache | None = None,
    ) -> dict[str, Any]:
        """Delete a record and return its last state; fires ``item.deleted``.

        Raises:
            RecordNotFound: If the record is not visible to the principal
        """
        structure = self.resolve_structure(slug, cache)
        scope = self._evaluator.authorize(principal, Operation.DELETE, structure.slug)
        snapshot = structure.query.find_by_id(record_id, scope)
        if snapshot is None:
            raise RecordNotFound(record_id, structure.slug)
        if structure.query.delete(record_id, scope) == 0:
            raise RecordNotFound(record_id, structure.slug)

        logger.info(f"Deleted {structure.slug}/{record_id}")
        self._fire(ITEM_DELETED, structure.slug, snapshot)
        return snapshot
