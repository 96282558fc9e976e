"""Field validation: turn an untyped request body into typed column values."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from ahoi.core.types import ValidationMode
from ahoi.exceptions import MissingRequiredField, ValidationError
from ahoi.schema import type_mapper
from ahoi.storage.tables import BASE_COLUMNS


class FieldLike(Protocol):
    name: str
    slug: str
    type: str
    is_required: bool


class FieldValidator:
    """Validates and coerces record input against a structure's fields.

    Keys that do not name a field are dropped, and base columns are never
    taken from input.
    """

    def __init__(self, fields: Iterable[FieldLike]) -> None:
        self._fields = {f.slug: f for f in fields if f.slug not in BASE_COLUMNS}

    def validate(self, data: Any, mode: ValidationMode | str = ValidationMode.CREATE) -> dict[str, Any]:
        """Return the sanitized column values for ``data``.

        Args:
            data: Request body (must be a JSON object)
            mode: ``create`` enforces required fields, ``update`` allows partial input

        Raises:
            MissingRequiredField: On create, if a required field key is absent
            ValidationError: If the body is not an object or any value fails coercion
        """
        if not isinstance(data, Mapping):
            raise ValidationError("Request body must be a JSON object.")

        if ValidationMode(mode) == ValidationMode.CREATE:
            for field in self._fields.values():
                if field.is_required and field.slug not in data:
                    raise MissingRequiredField(field.name)

        sanitized: dict[str, Any] = {}
        errors: dict[str, str] = {}
        for key, raw in data.items():
            field = self._fields.get(key)
            if field is None:
                continue
            try:
                value = type_mapper.coerce(field.type, raw)
            except ValidationError as e:
                errors[key] = e.message
                continue
            if value is None and field.is_required:
                errors[key] = "This field cannot be null."
                continue
            sanitized[key] = value

        if errors:
            detail = "; ".join(f"{key}: {message}" for key, message in errors.items())
            raise ValidationError(f"Invalid field values. {detail}", field_errors=errors)
        return sanitized
