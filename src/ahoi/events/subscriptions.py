"""Webhook subscription storage."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import httpx
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ahoi.core.types import SubscriptionInfo, SubscriptionStatus
from ahoi.exceptions import InvalidURL, SubscriptionNotFound, ValidationError
from ahoi.schema.models import Webhook, get_by_id

if TYPE_CHECKING:
    from ahoi.core.connection import DatabaseConnection

KNOWN_EVENTS = ("item.created", "item.updated", "item.deleted", "user.created")
MAX_URL_LENGTH = 255
_SCOPED_EVENT_RE = re.compile(r"^(?P<event>[a-z]+\.[a-z]+)(:(?P<slug>[a-z0-9]+(-[a-z0-9]+)*))?$")


def validate_target_url(url: str) -> str:
    """Accept absolute http(s) URLs up to 255 characters."""
    candidate = (url or "").strip()
    try:
        parsed = httpx.URL(candidate)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidURL(candidate) from e
    if parsed.scheme not in ("http", "https") or not parsed.host or len(candidate) > MAX_URL_LENGTH:
        raise InvalidURL(candidate)
    return candidate


def validate_event_name(event_name: str) -> str:
    """Accept a known event, optionally scoped to a structure (``item.created:movies``)."""
    candidate = (event_name or "").strip()
    match = _SCOPED_EVENT_RE.match(candidate)
    if not match or match.group("event") not in KNOWN_EVENTS:
        raise ValidationError(
            f"Invalid event '{candidate}'. Use one of {', '.join(KNOWN_EVENTS)}, optionally followed by ':<structure>'."
        )
    return candidate


def _info(webhook: Webhook) -> SubscriptionInfo:
    return SubscriptionInfo(
        id=webhook.id,
        target_url=webhook.target_url,
        event_name=webhook.event_name,
        structure_slug=webhook.structure_slug,
        status=SubscriptionStatus(webhook.status),
        created_at=webhook.created_at,
    )


class SubscriptionStore:
    """Add, list, toggle and remove webhook subscriptions."""

    def __init__(self, connection: DatabaseConnection) -> None:
        self._connection = connection

    def _get_session(self) -> Session:
        return self._connection.get_session()

    def add(
        self,
        target_url: str,
        event_name: str,
        structure_slug: str | None = None,
        status: SubscriptionStatus | str = SubscriptionStatus.ACTIVE,
    ) -> SubscriptionInfo:
        """Register a subscription.

        ``structure_slug=None`` subscribes to the event for every structure.

        Raises:
            InvalidURL: If the target is not an http(s) URL
            ValidationError: If the event name is unknown
        """
        webhook = Webhook(
            target_url=validate_target_url(target_url),
            event_name=validate_event_name(event_name),
            structure_slug=structure_slug or None,
            status=SubscriptionStatus(status).value,
        )
        with self._get_session() as session:
            session.add(webhook)
            session.commit()
            return _info(webhook)

    def get(self, subscription_id: int) -> SubscriptionInfo:
        with self._get_session() as session:
            webhook = get_by_id(session, Webhook, subscription_id)
            if webhook is None:
                raise SubscriptionNotFound(subscription_id)
            return _info(webhook)

    def list_subscriptions(self, structure_slug: str | None = None) -> list[SubscriptionInfo]:
        statement = select(Webhook).order_by(Webhook.id)
        if structure_slug is not None:
            statement = statement.where(Webhook.structure_slug == structure_slug)
        with self._get_session() as session:
            return [_info(w) for w in session.scalars(statement)]

    def set_status(self, subscription_id: int, status: SubscriptionStatus | str) -> SubscriptionInfo:
        with self._get_session() as session:
            webhook = get_by_id(session, Webhook, subscription_id)
            if webhook is None:
                raise SubscriptionNotFound(subscription_id)
            webhook.status = SubscriptionStatus(status).value
            session.commit()
            return _info(webhook)

    def remove(self, subscription_id: int) -> None:
        with self._get_session() as session:
            webhook = get_by_id(session, Webhook, subscription_id)
            if webhook is None:
                raise SubscriptionNotFound(subscription_id)
            session.delete(webhook)
            session.commit()

    def matching(self, event_name: str, structure_slug: str | None) -> list[SubscriptionInfo]:
        """Active subscriptions that should receive ``event_name`` for a structure.

        A subscription matches when its event is ``<event>:<slug>``, or plain
        ``<event>`` with no structure or the same structure.
        """
        conditions = [(Webhook.event_name == event_name) & (Webhook.structure_slug.is_(None))]
        if structure_slug is not None:
            conditions.append(Webhook.event_name == f"{event_name}:{structure_slug}")
            conditions.append((Webhook.event_name == event_name) & (Webhook.structure_slug == structure_slug))
        statement = (
            select(Webhook)
            .where(Webhook.status == SubscriptionStatus.ACTIVE.value, or_(*conditions))
            .order_by(Webhook.id)
        )
        with self._get_session() as session:
            return [_info(w) for w in session.scalars(statement)]
