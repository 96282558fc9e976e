"""Request dependencies: the service container, the principal and request params."""

from __future__ import annotations

import json
from typing import Any

from fastapi import Depends, Request

from ahoi.auth.principal import Principal
from ahoi.core.engine import Ahoi
from ahoi.data.engine import StructureCache
from ahoi.exceptions import Unauthenticated, ValidationError

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def get_ahoi(request: Request) -> Ahoi:
    return request.app.state.ahoi


def get_principal(request: Request, ahoi: Ahoi = Depends(get_ahoi)) -> Principal | None:
    """Principal from ``Authorization: Bearer <token>``.

    A missing header means an anonymous request (``None``); a header that is
    present but malformed, invalid or expired is rejected.
    """
    header = request.headers.get("authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Authorization header is malformed.")
    return ahoi.principal_from_token(token.strip())


def get_structure_cache() -> StructureCache:
    """A fresh structure cache that lives for one request."""
    return StructureCache()


async def json_body(request: Request) -> Any:
    """Decoded JSON body; an empty body is an empty object."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError as e:
        raise ValidationError("Request body is not valid JSON.") from e


async def request_params(request: Request) -> dict[str, Any]:
    """Query parameters merged with a form or JSON object body; the body wins."""
    params: dict[str, Any] = dict(request.query_params)
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        params.update({k: v for k, v in form.items() if isinstance(v, str)})
        return params
    body = await json_body(request)
    if isinstance(body, dict):
        params.update(body)
    return params
