"""Signed bearer tokens (HS256 JWT) for API callers."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from jose import JWTError, jwt

from ahoi.exceptions import Unauthenticated

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    roles: tuple[str, ...]
    expires_at: int


class TokenService:
    """Issues and validates tokens carrying ``data.user.{id, roles}``."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl_days: int = 7,
        issuer: str = "ahoi-api",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = ttl_days * SECONDS_PER_DAY
        self._issuer = issuer
        self._clock = clock

    def issue(self, user_id: int, roles: Sequence[str]) -> str:
        """Create a token valid from now for the configured number of days."""
        issued_at = int(self._clock())
        claims: dict[str, Any] = {
            "iss": self._issuer,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": issued_at + self._ttl,
            "data": {"user": {"id": user_id, "roles": list(roles)}},
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def decode(self, token: str) -> TokenClaims:
        """Validate signature, issuer and lifetime.

        Raises:
            Unauthenticated: If the token is malformed, forged or expired
        """
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm], issuer=self._issuer)
            user = claims["data"]["user"]
            return TokenClaims(
                user_id=int(user["id"]),
                roles=tuple(user.get("roles") or ()),
                expires_at=int(claims["exp"]),
            )
        except (JWTError, KeyError, TypeError, ValueError) as e:
            logger.info(f"Rejected bearer token: {e}")
            raise Unauthenticated("Invalid or expired token.") from e
