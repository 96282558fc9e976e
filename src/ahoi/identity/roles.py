"""Built-in roles and the capabilities each one grants."""

from __future__ import annotations

from dataclasses import dataclass

from ahoi.auth.policy import (
    DELETE_OTHERS_FILES,
    MANAGE_ALL_DATA,
    MANAGE_USERS,
    SEND_EMAILS,
    UPLOAD_FILES,
    USE_API,
)
from ahoi.auth.principal import ADMINISTRATOR


@dataclass(frozen=True)
class RoleDefinition:
    label: str
    capabilities: frozenset[str]


ROLE_DEFINITIONS: dict[str, RoleDefinition] = {
    # Administrators implicitly hold every capability
    ADMINISTRATOR: RoleDefinition(
        "Administrator",
        frozenset({"read", USE_API, MANAGE_ALL_DATA, SEND_EMAILS, MANAGE_USERS, UPLOAD_FILES, DELETE_OTHERS_FILES}),
    ),
    "editor": RoleDefinition("Editor", frozenset({"read", USE_API, UPLOAD_FILES, DELETE_OTHERS_FILES})),
    "author": RoleDefinition("Author", frozenset({"read", USE_API, UPLOAD_FILES})),
    "contributor": RoleDefinition("Contributor", frozenset({"read", USE_API})),
    "subscriber": RoleDefinition("Subscriber", frozenset({"read", USE_API})),
    "manager": RoleDefinition(
        "Manager",
        frozenset(
            {
                "read",
                "list_users",
                "create_users",
                "edit_users",
                USE_API,
                MANAGE_ALL_DATA,
                SEND_EMAILS,
                MANAGE_USERS,
            }
        ),
    ),
}

# Hidden from non-administrators when listing roles
BUILTIN_ROLES = ("administrator", "editor", "author", "contributor", "subscriber")


def is_known_role(role: str) -> bool:
    return role in ROLE_DEFINITIONS


def role_capabilities(role: str) -> frozenset[str]:
    definition = ROLE_DEFINITIONS.get(role)
    return definition.capabilities if definition else frozenset()
