"""User accounts: registration, password check, management and profile metadata."""

from __future__ import annotations

import logging
import re
from collections.abc import Collection, Mapping
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from ahoi.auth.principal import Principal
from ahoi.core.types import UserInfo
from ahoi.events.dispatcher import USER_CREATED
from ahoi.exceptions import (
    DuplicateUser,
    InvalidCredentials,
    InvalidEmail,
    UserNotFound,
    ValidationError,
)
from ahoi.identity.roles import BUILTIN_ROLES, ROLE_DEFINITIONS, is_known_role, role_capabilities
from ahoi.schema.models import User, get_by_id
from ahoi.schema.type_mapper import strip_tags

if TYPE_CHECKING:
    from ahoi.core.connection import DatabaseConnection
    from ahoi.events.dispatcher import EventDispatcher

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_USERNAME_RE = re.compile(r"[^A-Za-z0-9 _.@-]")


def sanitize_username(username: Any) -> str:
    return _USERNAME_RE.sub("", strip_tags(str(username or ""))).strip()


def sanitize_email(email: Any) -> str:
    return str(email or "").strip().lower()


def _capabilities(user: User) -> frozenset[str]:
    return role_capabilities(user.role) | frozenset(user.capabilities or ())


def _info(user: User) -> UserInfo:
    return UserInfo(
        ID=user.id,
        user_login=user.username,
        display_name=user.display_name,
        user_email=user.email,
        roles=[user.role],
        capabilities=sorted(_capabilities(user)),
    )


class IdentityStore:
    """Stores users and turns them into principals."""

    def __init__(
        self,
        connection: DatabaseConnection,
        default_role: str = "subscriber",
        self_register_roles: Collection[str] = ("subscriber",),
        profile_fields: Collection[str] = ("first_name", "last_name", "phone_number", "company"),
        dispatcher: EventDispatcher | None = None,
    ) -> None:
        self._connection = connection
        self._default_role = default_role
        self._self_register_roles = frozenset(self_register_roles)
        self._profile_fields = tuple(profile_fields)
        self._dispatcher = dispatcher

    def _get_session(self) -> Session:
        return self._connection.get_session()

    def _load(self, session: Session, user_id: int) -> User:
        user = get_by_id(session, User, user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    def _ensure_unique(self, session: Session, username: str | None, email: str | None, exclude: int | None = None) -> None:
        if username is not None:
            statement = select(User.id).where(func.lower(User.username) == username.lower())
            if exclude is not None:
                statement = statement.where(User.id != exclude)
            if session.scalars(statement).first() is not None:
                raise DuplicateUser("username")
        if email is not None:
            statement = select(User.id).where(User.email == email)
            if exclude is not None:
                statement = statement.where(User.id != exclude)
            if session.scalars(statement).first() is not None:
                raise DuplicateUser("email")

    def _resolve_role(self, role: str | None, trusted: bool) -> str:
        role = (role or "").strip()
        if not role:
            return self._default_role
        if trusted:
            if not is_known_role(role):
                raise ValidationError(f"Unknown role '{role}'.")
            return role
        # Self-registration silently falls back to the default role
        return role if role in self._self_register_roles and is_known_role(role) else self._default_role

    # === Accounts ===

    def register(
        self,
        username: Any,
        email: Any,
        password: Any,
        role: str | None = None,
        display_name: str | None = None,
        trusted: bool = False,
    ) -> UserInfo:
        """Create an account and fire ``user.created``.

        Args:
            trusted: True when a user manager creates the account; any known
                role may then be assigned. Public registration only honours
                roles on the self-registration allow-list.

        Raises:
            ValidationError: If username, email or password is missing
            InvalidEmail: If the email address is malformed
            DuplicateUser: If the username or email is taken
        """
        username = sanitize_username(username)
        email = sanitize_email(email)
        if not username or not email or not password:
            raise ValidationError("Username, email, and password are required.")
        if not EMAIL_RE.match(email):
            raise InvalidEmail(email)
        assigned_role = self._resolve_role(role, trusted)

        with self._get_session() as session:
            self._ensure_unique(session, username, email)
            user = User(
                username=username,
                email=email,
                password_hash=generate_password_hash(str(password)),
                display_name=strip_tags(display_name or username).strip(),
                role=assigned_role,
                capabilities=[],
                profile={},
            )
            session.add(user)
            session.commit()
            info = _info(user)
            created_at = user.created_at

        logger.info(f"Registered user {info.ID} ({info.user_login}) as {assigned_role}")
        if self._dispatcher is not None:
            self._dispatcher.fire(
                USER_CREATED,
                None,
                {
                    "ID": info.ID,
                    "user_login": info.user_login,
                    "user_email": info.user_email,
                    "display_name": info.display_name,
                    "user_registered": created_at.isoformat() if created_at else None,
                },
            )
        return info

    def authenticate(self, login: Any, password: Any) -> UserInfo:
        """Check a username (or email) and password.

        Raises:
            InvalidCredentials: If no account matches
        """
        login = str(login or "").strip()
        with self._get_session() as session:
            user = session.scalars(
                select(User).where(or_(func.lower(User.username) == login.lower(), User.email == login.lower()))
            ).first()
            if user is None or not check_password_hash(user.password_hash, str(password or "")):
                logger.info(f"Failed login for '{login}'")
                raise InvalidCredentials()
            return _info(user)

    def principal_for(self, user_id: int) -> Principal | None:
        """Current roles and capabilities of a user, or None if the account is gone."""
        with self._get_session() as session:
            user = get_by_id(session, User, user_id)
            if user is None:
                return None
            return Principal(id=user.id, roles=(user.role,), capabilities=_capabilities(user))

    def list_users(self) -> list[UserInfo]:
        with self._get_session() as session:
            return [_info(u) for u in session.scalars(select(User).order_by(User.id))]

    def get_user(self, user_id: int) -> UserInfo:
        with self._get_session() as session:
            return _info(self._load(session, user_id))

    def update_user(self, user_id: int, email: Any = None, role: str | None = None) -> UserInfo:
        """Change a user's email and/or role.

        Raises:
            UserNotFound: If the account does not exist
            InvalidEmail: If the new email is malformed
            DuplicateUser: If the new email is taken
            ValidationError: If the role is unknown
        """
        with self._get_session() as session:
            user = self._load(session, user_id)
            if email is not None:
                new_email = sanitize_email(email)
                if not EMAIL_RE.match(new_email):
                    raise InvalidEmail(new_email)
                self._ensure_unique(session, None, new_email, exclude=user_id)
                user.email = new_email
            if role is not None:
                user.role = self._resolve_role(role, trusted=True)
            session.commit()
            return _info(user)

    def delete_user(self, user_id: int) -> None:
        with self._get_session() as session:
            session.delete(self._load(session, user_id))
            session.commit()
        logger.info(f"Deleted user {user_id}")

    def list_roles(self, include_builtin: bool = True) -> dict[str, str]:
        """Role slugs mapped to display labels."""
        return {
            name: definition.label
            for name, definition in ROLE_DEFINITIONS.items()
            if include_builtin or name not in BUILTIN_ROLES
        }

    def grant_capability(self, user_id: int, capability: str) -> UserInfo:
        with self._get_session() as session:
            user = self._load(session, user_id)
            if capability not in user.capabilities:
                user.capabilities = [*user.capabilities, capability]
            session.commit()
            return _info(user)

    def revoke_capability(self, user_id: int, capability: str) -> UserInfo:
        with self._get_session() as session:
            user = self._load(session, user_id)
            user.capabilities = [c for c in user.capabilities if c != capability]
            session.commit()
            return _info(user)

    # === Profile ===

    def get_profile(self, user_id: int) -> dict[str, Any]:
        with self._get_session() as session:
            return dict(self._load(session, user_id).profile or {})

    def update_profile(self, user_id: int, data: Any) -> dict[str, Any]:
        """Store allow-listed profile keys; other keys are ignored."""
        if not isinstance(data, Mapping):
            raise ValidationError("Request body must be a JSON object.")
        with self._get_session() as session:
            user = self._load(session, user_id)
            profile = dict(user.profile or {})
            for key in self._profile_fields:
                if key in data:
                    profile[key] = " ".join(strip_tags(str(data[key] if data[key] is not None else "")).split())
            user.profile = profile
            session.commit()
            return dict(profile)
