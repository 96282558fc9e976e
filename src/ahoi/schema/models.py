"""SQLAlchemy ORM models for the Ahoi API meta-tables.

Structures and fields are schema stored as data; every structure owns one
physical table managed by :mod:`ahoi.storage.tables`. Webhook subscriptions,
users and media objects live in fixed tables next to them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, TypeVar

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship

from ahoi.storage.tables import is_row_id

# SQLite only auto-increments an INTEGER PRIMARY KEY
IdType = BigInteger().with_variant(Integer(), "sqlite")

ModelT = TypeVar("ModelT")


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all Ahoi API models."""

    pass


def get_by_id(session: Session, model: type[ModelT], row_id: int) -> ModelT | None:
    """``session.get`` that treats ids outside the id column range as missing."""
    if not is_row_id(row_id):
        return None
    return session.get(model, row_id)


class Structure(Base):
    """A user-defined table (e.g. movies, products)."""

    __tablename__ = "ahoi_api_structures"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    fields: Mapped[list[Field]] = relationship(
        "Field",
        back_populates="structure",
        cascade="all, delete-orphan",
        order_by="Field.id",
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Field(Base):
    """A typed column on a structure's table."""

    __tablename__ = "ahoi_api_fields"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    structure_id: Mapped[int] = mapped_column(
        ForeignKey("ahoi_api_structures.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    default_value: Mapped[str | None] = mapped_column(Text, nullable=True)

    structure: Mapped[Structure] = relationship("Structure", back_populates="fields")

    __table_args__ = (Index("ix_ahoi_field_structure_slug", "structure_id", "slug", unique=True),)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "structure_id": self.structure_id,
            "name": self.name,
            "slug": self.slug,
            "type": self.type,
            "is_required": self.is_required,
            "default_value": self.default_value,
        }


class Webhook(Base):
    """An outbound subscription to record and user events."""

    __tablename__ = "ahoi_api_webhooks"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    target_url: Mapped[str] = mapped_column(String(255), nullable=False)
    event_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    structure_slug: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class User(Base):
    """An API account. Roles map to capability sets in :mod:`ahoi.identity.roles`."""

    __tablename__ = "ahoi_api_users"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(60), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(250), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    capabilities: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    profile: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class Media(Base):
    """An uploaded file kept by the media store."""

    __tablename__ = "ahoi_api_media"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    stored_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
