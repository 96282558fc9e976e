"""Main Ahoi service container."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ahoi.auth.policy import AuthorizationEvaluator
from ahoi.auth.principal import Principal
from ahoi.auth.tokens import TokenService
from ahoi.core.config import Settings
from ahoi.core.connection import DatabaseConnection
from ahoi.core.types import FieldInfo, StructureInfo
from ahoi.data.engine import CrudEngine
from ahoi.events.dispatcher import EventDispatcher
from ahoi.events.subscriptions import SubscriptionStore
from ahoi.events.worker import DeliveryWorker
from ahoi.exceptions import Unauthenticated
from ahoi.identity.store import IdentityStore
from ahoi.schema.engine import SchemaManager
from ahoi.sinks.mail import Mailer
from ahoi.sinks.media import MediaStore

if TYPE_CHECKING:
    import httpx


class Ahoi:
    """Wires every component from one :class:`Settings` instance.

    The entry point (CLI, ASGI factory or test fixture) builds exactly one
    ``Ahoi`` and hands it to whoever needs it; there is no global accessor.

    Example:
        ahoi = Ahoi(Settings(database_url="sqlite:///:memory:"))
        ahoi.schema.create_structure("Movies", "movies")
        ahoi.schema.add_field("movies", "Title", "title", "TEXT_SHORT", is_required=True)
    """

    def __init__(self, settings: Settings | None = None, transport: httpx.BaseTransport | None = None) -> None:
        """Initialize Ahoi.

        Args:
            settings: Configuration (read from the environment when omitted)
            transport: Optional httpx transport for webhook delivery
        """
        self.settings = settings or Settings()
        s = self.settings

        self.connection = DatabaseConnection(s.database_url, echo=s.echo)
        self.schema = SchemaManager(self.connection, table_prefix=s.table_prefix)
        self.schema.initialize()

        self.subscriptions = SubscriptionStore(self.connection)
        self.worker = DeliveryWorker(
            timeout=s.webhook_timeout,
            max_redirects=s.webhook_max_redirects,
            transport=transport,
        )
        self.dispatcher = EventDispatcher(self.subscriptions, self.worker)

        self.evaluator = AuthorizationEvaluator(s.auth_policy)
        self.crud = CrudEngine(
            self.schema,
            self.evaluator,
            self.dispatcher,
            default_page_size=s.default_page_size,
            max_page_size=s.max_page_size,
        )

        self.tokens = TokenService(
            secret=s.jwt_secret or "",
            algorithm=s.jwt_algorithm,
            ttl_days=s.token_ttl_days,
            issuer=s.token_issuer,
        )
        self.identity = IdentityStore(
            self.connection,
            default_role=s.default_role,
            self_register_roles=s.self_register_role_list,
            profile_fields=s.profile_field_list,
            dispatcher=self.dispatcher,
        )
        self.media = MediaStore(self.connection, s.media_root, s.media_base_url)
        self.mailer = Mailer(
            host=s.smtp_host,
            port=s.smtp_port,
            username=s.smtp_username,
            password=s.smtp_password,
            from_email=s.smtp_from_email,
            starttls=s.smtp_starttls,
        )

    def close(self) -> None:
        """Flush pending webhooks and close the database connection."""
        self.worker.stop()
        self.connection.close()

    def __enter__(self) -> Ahoi:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # === Shortcuts ===

    def principal_from_token(self, token: str) -> Principal:
        """Resolve a bearer token to the current principal.

        Raises:
            Unauthenticated: If the token is invalid or the account is gone
        """
        claims = self.tokens.decode(token)
        principal = self.identity.principal_for(claims.user_id)
        if principal is None:
            raise Unauthenticated("The account behind this token no longer exists.")
        return principal

    def create_structure(
        self,
        name: str,
        slug: str,
        description: str | None = None,
        fields: list[dict[str, Any]] | None = None,
    ) -> StructureInfo:
        return self.schema.create_structure(name, slug, description=description, fields=fields)

    def add_field(self, slug: str, name: str, field_slug: str, type: str = "TEXT_SHORT", **kwargs: Any) -> FieldInfo:
        return self.schema.add_field(slug, name, field_slug, type, **kwargs)

    def describe(self) -> list[dict[str, Any]]:
        """All structures as JSON-ready dicts."""
        return [s.model_dump(mode="json") for s in self.schema.list_structures()]
