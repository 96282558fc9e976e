"""Generic CRUD routes for every structure.

These are catch-all paths; the app registers this router after every static
route so ``/token``, ``/users`` and friends are never shadowed.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, status

from ahoi.api.deps import get_ahoi, get_principal, get_structure_cache, json_body
from ahoi.auth.principal import Principal
from ahoi.core.engine import Ahoi
from ahoi.data.engine import StructureCache

router = APIRouter(tags=["records"])


@router.get("/{structure_slug}")
def list_items(
    structure_slug: str,
    request: Request,
    principal: Principal | None = Depends(get_principal),
    cache: StructureCache = Depends(get_structure_cache),
    ahoi: Ahoi = Depends(get_ahoi),
) -> list[dict[str, Any]]:
    """List records; supports field equality filters and ``_sort/_order/_limit/_page``.

    ``_limit`` defaults to `AHOI_DEFAULT_PAGE_SIZE` (20) and is capped at
    `AHOI_MAX_PAGE_SIZE` (100); larger values return at most that many rows.
    """
    return ahoi.crud.list(structure_slug, principal, dict(request.query_params), cache=cache)


@router.post("/{structure_slug}", status_code=status.HTTP_201_CREATED)
def create_item(
    structure_slug: str,
    body: Any = Depends(json_body),
    principal: Principal | None = Depends(get_principal),
    cache: StructureCache = Depends(get_structure_cache),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    return ahoi.crud.create(structure_slug, principal, body, cache=cache)


@router.get("/{structure_slug}/{item_id}")
def get_item(
    structure_slug: str,
    item_id: int,
    principal: Principal | None = Depends(get_principal),
    cache: StructureCache = Depends(get_structure_cache),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    return ahoi.crud.get(structure_slug, principal, item_id, cache=cache)


@router.put("/{structure_slug}/{item_id}")
@router.patch("/{structure_slug}/{item_id}")
def update_item(
    structure_slug: str,
    item_id: int,
    body: Any = Depends(json_body),
    principal: Principal | None = Depends(get_principal),
    cache: StructureCache = Depends(get_structure_cache),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    return ahoi.crud.update(structure_slug, principal, item_id, body, cache=cache)


@router.delete("/{structure_slug}/{item_id}")
def delete_item(
    structure_slug: str,
    item_id: int,
    principal: Principal | None = Depends(get_principal),
    cache: StructureCache = Depends(get_structure_cache),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    ahoi.crud.delete(structure_slug, principal, item_id, cache=cache)
    return {"success": True, "message": "Item deleted."}
