"""Core components for Ahoi API."""

from ahoi.core.config import Settings
from ahoi.core.connection import DatabaseConnection
from ahoi.core.types import (
    AccessPolicy,
    FieldInfo,
    FieldSpec,
    FieldType,
    ListQuery,
    Operation,
    StructureInfo,
)

__all__ = [
    "DatabaseConnection",
    "Settings",
    "AccessPolicy",
    "FieldInfo",
    "FieldSpec",
    "FieldType",
    "ListQuery",
    "Operation",
    "StructureInfo",
]
