"""Core types and specifications for Ahoi API.

All output types are pydantic models so the CLI and REST layers can dump them
straight to JSON.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field


class FieldType(StrEnum):
    """Field types an administrator can declare on a structure."""

    TEXT_SHORT = "TEXT_SHORT"
    TEXT_LONG = "TEXT_LONG"
    NUMBER_INT = "NUMBER_INT"
    NUMBER_DECIMAL = "NUMBER_DECIMAL"
    BOOLEAN = "BOOLEAN"
    DATETIME = "DATETIME"
    DATE = "DATE"
    RELATIONSHIP = "RELATIONSHIP"
    JSON = "JSON"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid field type values."""
        return [t.value for t in cls]


class Operation(StrEnum):
    """CRUD operations on a structure's records."""

    LIST = "list"
    GET = "get"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AccessPolicy(StrEnum):
    """How record access is authorized for dynamic structures."""

    OWNERSHIP = "ownership"  # rows scoped to the creating principal
    CAPABILITY = "capability"  # shared rows, named capabilities per operation


class SubscriptionStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ValidationMode(StrEnum):
    CREATE = "create"
    UPDATE = "update"


class FieldSpec(BaseModel):
    """Specification for a field definition (admin input)."""

    name: str = Field(..., description="Display name")
    slug: str = Field(..., description="Column identifier (snake_case)")
    type: str = Field(default=FieldType.TEXT_SHORT.value, description="Declared field type (see FieldType)")
    is_required: bool = Field(default=False, description="Whether create requests must supply it")
    default_value: str | None = Field(default=None, description="Column default, as a string")

    model_config = {"use_enum_values": True}


class FieldInfo(BaseModel):
    """Information about an existing field (output format)."""

    id: int
    name: str
    slug: str
    type: str
    is_required: bool
    default_value: str | None = None


class StructureInfo(BaseModel):
    """Information about an existing structure (output format)."""

    id: int
    name: str
    slug: str
    table_name: str
    description: str | None = None
    fields: list[FieldInfo] = Field(default_factory=list)
    record_count: int | None = None
    created_at: datetime | None = None


class SubscriptionInfo(BaseModel):
    """A webhook subscription (output format)."""

    id: int
    target_url: str
    event_name: str
    structure_slug: str | None = None
    status: SubscriptionStatus
    created_at: datetime | None = None


class ListQuery(BaseModel):
    """Parsed list parameters: equality filters, sort and pagination."""

    filters: dict[str, Any] = Field(default_factory=dict)
    sort: str = "id"
    order: Literal["asc", "desc"] = "asc"
    limit: int = 20
    page: int = 1

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class UserInfo(BaseModel):
    """A user account as exposed to management endpoints."""

    ID: int
    user_login: str
    display_name: str
    user_email: str
    roles: list[str]
    capabilities: list[str] = Field(default_factory=list)


class MediaInfo(BaseModel):
    success: bool = True
    id: int
    url: str
    mime_type: str
    title: str
    file_name: str
