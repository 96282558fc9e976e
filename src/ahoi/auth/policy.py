"""Authorization decisions for record and management operations.

Record operations are looked up in :data:`RECORD_REQUIREMENTS`, keyed by
access policy and operation. The result is a :class:`RowScope` that the CRUD
engine applies to its statements. Decisions depend only on the principal,
the operation and the structure slug, never on the request body.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ahoi.auth.principal import ADMINISTRATOR, Principal
from ahoi.core.types import AccessPolicy, Operation
from ahoi.exceptions import CannotDeleteSelf, Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

USE_API = "use_ahoi_api"
MANAGE_ALL_DATA = "manage_ahoi_api_all_data"
MANAGE_USERS = "manage_api_users"
SEND_EMAILS = "send_api_emails"
UPLOAD_FILES = "upload_files"
DELETE_OTHERS_FILES = "delete_others_files"


@dataclass(frozen=True)
class RequiredCapability:
    """What an operation demands beyond authentication.

    ``template`` is formatted with the structure slug (``"create_{slug}"``);
    ``None`` means authentication alone suffices. ``owner_scoped`` restricts
    the operation to rows owned by the principal.
    """

    template: str | None = None
    owner_scoped: bool = False

    def resolve(self, slug: str) -> str | None:
        if self.template is None:
            return None
        return self.template.format(slug=slug)


@dataclass(frozen=True)
class RowScope:
    """Row filter for an authorized operation; ``owner_id=None`` means unscoped."""

    owner_id: int | None = None

    @property
    def is_scoped(self) -> bool:
        return self.owner_id is not None


_OWNED = RequiredCapability(owner_scoped=True)
_AUTHENTICATED = RequiredCapability()

RECORD_REQUIREMENTS: dict[tuple[AccessPolicy, Operation], RequiredCapability] = {
    (AccessPolicy.OWNERSHIP, Operation.LIST): _OWNED,
    (AccessPolicy.OWNERSHIP, Operation.GET): _OWNED,
    (AccessPolicy.OWNERSHIP, Operation.CREATE): _AUTHENTICATED,
    (AccessPolicy.OWNERSHIP, Operation.UPDATE): _OWNED,
    (AccessPolicy.OWNERSHIP, Operation.DELETE): _OWNED,
    (AccessPolicy.CAPABILITY, Operation.LIST): _AUTHENTICATED,
    (AccessPolicy.CAPABILITY, Operation.GET): _AUTHENTICATED,
    (AccessPolicy.CAPABILITY, Operation.CREATE): RequiredCapability("create_{slug}"),
    (AccessPolicy.CAPABILITY, Operation.UPDATE): RequiredCapability(MANAGE_ALL_DATA),
    (AccessPolicy.CAPABILITY, Operation.DELETE): RequiredCapability(MANAGE_ALL_DATA),
}


def require_principal(principal: Principal | None) -> Principal:
    """Return the principal or raise Unauthenticated."""
    if principal is None:
        raise Unauthenticated()
    return principal


class AuthorizationEvaluator:
    """Decides whether a principal may perform an operation.

    Args:
        default_policy: Policy for structures without an override
        policies: Per-structure policy overrides, keyed by slug
    """

    def __init__(
        self,
        default_policy: AccessPolicy | str = AccessPolicy.OWNERSHIP,
        policies: dict[str, AccessPolicy] | None = None,
    ) -> None:
        self.default_policy = AccessPolicy(default_policy)
        self._policies: dict[str, AccessPolicy] = dict(policies or {})
        self._overrides: dict[tuple[str, Operation], RequiredCapability] = {}

    def policy_for(self, slug: str) -> AccessPolicy:
        return self._policies.get(slug, self.default_policy)

    def set_policy(self, slug: str, policy: AccessPolicy | str) -> None:
        self._policies[slug] = AccessPolicy(policy)

    def register_override(self, slug: str, operation: Operation | str, requirement: RequiredCapability) -> None:
        """Replace the requirement for one operation on one structure."""
        self._overrides[(slug, Operation(operation))] = requirement

    def requirement_for(self, operation: Operation | str, slug: str) -> RequiredCapability:
        operation = Operation(operation)
        override = self._overrides.get((slug, operation))
        if override is not None:
            return override
        return RECORD_REQUIREMENTS[(self.policy_for(slug), operation)]

    def authorize(self, principal: Principal | None, operation: Operation | str, slug: str) -> RowScope:
        """Authorize a record operation and return the row scope to apply.

        Raises:
            Unauthenticated: If there is no principal
            Forbidden: If the principal lacks the required capability
        """
        principal = require_principal(principal)
        requirement = self.requirement_for(operation, slug)
        capability = requirement.resolve(slug)
        if capability is not None and not principal.has(capability):
            logger.info(f"Denied {operation} on '{slug}' to user {principal.id}: missing {capability}")
            raise Forbidden(capability=capability)
        return RowScope(owner_id=principal.id if requirement.owner_scoped else None)

    # === Management gates ===

    def require(self, principal: Principal | None, capability: str) -> Principal:
        """Require an authenticated principal holding ``capability``."""
        principal = require_principal(principal)
        if not principal.has(capability):
            raise Forbidden(capability=capability)
        return principal

    def require_role(self, principal: Principal | None, role: str) -> Principal:
        principal = require_principal(principal)
        if role not in principal.roles:
            raise Forbidden(f"This action requires the {role} role.")
        return principal

    def authorize_user_management(self, principal: Principal | None) -> Principal:
        return self.require(principal, MANAGE_USERS)

    def authorize_user_delete(self, principal: Principal | None, target_user_id: int) -> Principal:
        """Only administrators delete users, and never themselves."""
        principal = self.require_role(principal, ADMINISTRATOR)
        if principal.id == target_user_id:
            raise CannotDeleteSelf()
        return principal

    def authorize_upload(self, principal: Principal | None) -> Principal:
        return self.require(principal, UPLOAD_FILES)

    def authorize_media_delete(self, principal: Principal | None, owner_id: int) -> Principal:
        principal = require_principal(principal)
        if owner_id != principal.id and not principal.has(DELETE_OTHERS_FILES):
            raise Forbidden(capability=DELETE_OTHERS_FILES)
        return principal

    def authorize_email(self, principal: Principal | None) -> Principal:
        return self.require(principal, SEND_EMAILS)
