"""The authenticated caller of an operation."""

from __future__ import annotations

from dataclasses import dataclass, field

ADMINISTRATOR = "administrator"


@dataclass(frozen=True)
class Principal:
    """An authenticated user: id (stamped as ``owner_id``), roles and capabilities.

    The administrator role implicitly holds every capability.
    """

    id: int
    roles: tuple[str, ...] = ()
    capabilities: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_administrator(self) -> bool:
        return ADMINISTRATOR in self.roles

    def has(self, capability: str) -> bool:
        return self.is_administrator or capability in self.capabilities
