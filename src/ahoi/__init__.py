"""Ahoi API - dynamic structures with an automatic REST CRUD API.

An administrator defines structures (tables) and typed fields; Ahoi keeps the
physical tables in step with that schema and serves permission-scoped CRUD
for every structure under ``/ahoi/v1``, firing webhooks on each change.

Example:
    from ahoi import Ahoi, Settings

    ahoi = Ahoi(Settings(database_url="sqlite:///ahoi.db"))
    ahoi.create_structure(
        "Movies",
        "movies",
        fields=[
            {"name": "Title", "slug": "title", "type": "TEXT_SHORT", "is_required": True},
            {"name": "Year", "slug": "year", "type": "NUMBER_INT"},
        ],
    )

    # Serve it
    from ahoi.api import create_app
    app = create_app(ahoi)
"""

from ahoi.auth.principal import Principal
from ahoi.core.config import Settings
from ahoi.core.engine import Ahoi
from ahoi.core.types import (
    AccessPolicy,
    FieldInfo,
    FieldSpec,
    FieldType,
    ListQuery,
    Operation,
    StructureInfo,
    SubscriptionInfo,
    UserInfo,
)
from ahoi.exceptions import (
    AhoiError,
    Conflict,
    DuplicateFieldSlug,
    DuplicateSlug,
    FieldNotFound,
    Forbidden,
    InvalidFieldType,
    InvalidSlug,
    MissingRequiredField,
    NoUpdatableFields,
    NotFound,
    RecordNotFound,
    ReservedKeyword,
    StorageError,
    StructureNotFound,
    Unauthenticated,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "Ahoi",
    "Settings",
    "Principal",
    # Types
    "AccessPolicy",
    "FieldInfo",
    "FieldSpec",
    "FieldType",
    "ListQuery",
    "Operation",
    "StructureInfo",
    "SubscriptionInfo",
    "UserInfo",
    # Exceptions
    "AhoiError",
    "Conflict",
    "DuplicateFieldSlug",
    "DuplicateSlug",
    "FieldNotFound",
    "Forbidden",
    "InvalidFieldType",
    "InvalidSlug",
    "MissingRequiredField",
    "NoUpdatableFields",
    "NotFound",
    "RecordNotFound",
    "ReservedKeyword",
    "StorageError",
    "StructureNotFound",
    "Unauthenticated",
    "ValidationError",
]
