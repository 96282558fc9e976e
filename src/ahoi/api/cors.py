"""CORS for the namespace, driven by the configured origin allow-list."""

from __future__ import annotations

from collections.abc import Sequence

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp

ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


class AllowListCORSMiddleware(CORSMiddleware):
    """Echoes an allowed ``Origin`` back with credentials enabled.

    Unlike the stock middleware, ordinary responses also carry
    ``Access-Control-Allow-Methods`` so clients see the same header set on
    preflight and actual requests.
    """

    def __init__(self, app: ASGIApp, allowed_origins: Sequence[str] = ()) -> None:
        super().__init__(
            app,
            allow_origins=list(allowed_origins),
            allow_methods=list(ALLOWED_METHODS),
            allow_headers=["Authorization", "Content-Type"],
            allow_credentials=True,
        )
        self.simple_headers["Access-Control-Allow-Methods"] = ", ".join(ALLOWED_METHODS)
