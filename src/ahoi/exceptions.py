"""Custom exceptions for Ahoi API.

Every error carries a machine-readable ``code``, a human-readable message and
the HTTP status the REST layer answers with. ``context`` holds extra details
that are safe to show to API clients; raw driver errors never go there.
"""

from __future__ import annotations

from typing import Any


class AhoiError(Exception):
    """Base exception for all Ahoi API errors."""

    code = "ahoi_error"
    status = 500

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "code": self.code,
            "message": self.message,
            "data": {"status": self.status, **self.context},
        }


# === 401 / 403 ===


class Unauthenticated(AhoiError):
    """No valid principal was supplied."""

    code = "unauthenticated"
    status = 401

    def __init__(self, message: str = "Authentication required.") -> None:
        super().__init__(message)


class Forbidden(AhoiError):
    """The principal lacks the capability for this operation."""

    code = "forbidden"
    status = 403

    def __init__(
        self,
        message: str = "You do not have permission to perform this action.",
        capability: str | None = None,
    ) -> None:
        super().__init__(message, {"capability": capability} if capability else None)
        self.capability = capability


class CannotDeleteSelf(Forbidden):
    code = "cannot_delete_self"

    def __init__(self) -> None:
        super().__init__("You cannot delete your own account.")


class InvalidCredentials(Forbidden):
    code = "invalid_credentials"

    def __init__(self) -> None:
        super().__init__("Invalid username or password.")


# === 404 ===


class NotFound(AhoiError):
    """Requested resource does not exist (or is not visible to the caller)."""

    code = "not_found"
    status = 404


class StructureNotFound(NotFound):
    """No structure is registered under the slug."""

    code = "structure_not_found"

    def __init__(self, slug: str, available: list[str] | None = None) -> None:
        available = available or []
        if available:
            message = f"Structure '{slug}' not found. Available structures: {', '.join(available)}"
        else:
            message = f"Structure '{slug}' not found. No structures exist yet."
        super().__init__(message, {"structure": slug})
        self.slug = slug
        self.available = available


class FieldNotFound(NotFound):
    code = "field_not_found"

    def __init__(self, field_slug: str, structure_slug: str) -> None:
        super().__init__(
            f"Field '{field_slug}' not found on '{structure_slug}'.",
            {"field": field_slug, "structure": structure_slug},
        )
        self.field_slug = field_slug
        self.structure_slug = structure_slug


class RecordNotFound(NotFound):
    """Record does not exist or belongs to another owner."""

    code = "record_not_found"

    def __init__(self, record_id: int, structure_slug: str) -> None:
        super().__init__("Item not found.", {"id": record_id, "structure": structure_slug})
        self.record_id = record_id
        self.structure_slug = structure_slug


class UserNotFound(NotFound):
    code = "user_not_found"

    def __init__(self, user_id: int) -> None:
        super().__init__("User not found.", {"id": user_id})
        self.user_id = user_id


class MediaNotFound(NotFound):
    code = "media_not_found"

    def __init__(self, media_id: int) -> None:
        super().__init__("File not found.", {"id": media_id})
        self.media_id = media_id


class SubscriptionNotFound(NotFound):
    code = "subscription_not_found"

    def __init__(self, subscription_id: int) -> None:
        super().__init__(f"Webhook subscription {subscription_id} not found.", {"id": subscription_id})
        self.subscription_id = subscription_id


# === 400 ===


class ValidationError(AhoiError):
    """Input failed validation."""

    code = "validation_error"
    status = 400

    def __init__(self, message: str, field_errors: dict[str, str] | None = None) -> None:
        super().__init__(message, {"field_errors": field_errors} if field_errors else None)
        self.field_errors = field_errors or {}


class MissingRequiredField(ValidationError):
    code = "missing_required_field"

    def __init__(self, field_name: str) -> None:
        super().__init__(f'Required field "{field_name}" is missing.')
        self.field_name = field_name


class ReservedKeyword(ValidationError):
    code = "reserved_keyword"

    def __init__(self, slug: str) -> None:
        super().__init__(f'The slug "{slug}" is a reserved keyword. Please choose another one.')
        self.slug = slug


class InvalidSlug(ValidationError):
    code = "invalid_slug"

    def __init__(self, slug: str, rule: str) -> None:
        super().__init__(f'Invalid slug "{slug}": {rule}')
        self.slug = slug


class InvalidFieldType(ValidationError):
    code = "invalid_field_type"

    def __init__(self, field_type: str, valid_types: list[str]) -> None:
        super().__init__(f"Invalid field type '{field_type}'. Valid types: {', '.join(valid_types)}")
        self.field_type = field_type
        self.valid_types = valid_types


class NoUpdatableFields(ValidationError):
    code = "no_updatable_fields"

    def __init__(self) -> None:
        super().__init__("No valid data provided for update.")


class InvalidEmail(ValidationError):
    code = "invalid_email"

    def __init__(self, email: str) -> None:
        super().__init__("Invalid email address.")
        self.email = email


class InvalidURL(ValidationError):
    code = "invalid_url"

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid URL '{url}'. Only http and https URLs are accepted.")
        self.url = url


# === 409 ===


class Conflict(AhoiError):
    """The resource already exists."""

    code = "conflict"
    status = 409


class DuplicateSlug(Conflict):
    code = "duplicate_slug"

    def __init__(self, slug: str) -> None:
        super().__init__(f"A structure with slug '{slug}' already exists.", {"slug": slug})
        self.slug = slug


class DuplicateFieldSlug(Conflict):
    code = "duplicate_field_slug"

    def __init__(self, field_slug: str, structure_slug: str) -> None:
        super().__init__(
            f"Field '{field_slug}' already exists on '{structure_slug}'.",
            {"field": field_slug, "structure": structure_slug},
        )
        self.field_slug = field_slug
        self.structure_slug = structure_slug


class DuplicateUser(Conflict):
    def __init__(self, attribute: str) -> None:
        if attribute == "email":
            message = "Email address already in use."
        else:
            message = "Username already exists."
        super().__init__(message)
        self.code = f"{attribute}_exists"
        self.attribute = attribute


# === 500 ===


class StorageError(AhoiError):
    """DDL or DML against the storage backend failed."""

    code = "storage_error"
    status = 500


class DeliveryError(AhoiError):
    """An outbound side effect (mail) could not be performed."""

    code = "email_failed"
    status = 500


class ConnectionError(StorageError):
    """Failed to connect to the database."""

    code = "connection_error"
