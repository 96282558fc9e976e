"""User management, roles and the caller's own profile."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status

from ahoi.api.deps import get_ahoi, get_principal, json_body, request_params
from ahoi.auth.policy import require_principal
from ahoi.auth.principal import ADMINISTRATOR, Principal
from ahoi.core.engine import Ahoi
from ahoi.exceptions import Forbidden, ValidationError

router = APIRouter(tags=["users"])


def _guard_role_assignment(principal: Principal, role: Any) -> None:
    if role is not None and str(role).strip() == ADMINISTRATOR and not principal.is_administrator:
        raise Forbidden("Only administrators can assign the administrator role.")


@router.get("/users")
def list_users(
    principal: Principal | None = Depends(get_principal),
    ahoi: Ahoi = Depends(get_ahoi),
) -> list[dict[str, Any]]:
    ahoi.evaluator.authorize_user_management(principal)
    return [u.model_dump(exclude={"capabilities"}) for u in ahoi.identity.list_users()]


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    params: dict[str, Any] = Depends(request_params),
    principal: Principal | None = Depends(get_principal),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    """Create an account on behalf of a user manager; any known role may be set."""
    manager = ahoi.evaluator.authorize_user_management(principal)
    _guard_role_assignment(manager, params.get("role"))
    user = ahoi.identity.register(
        params.get("username"),
        params.get("email"),
        params.get("password"),
        role=params.get("role"),
        display_name=params.get("display_name"),
        trusted=True,
    )
    return {"success": True, "message": "User registered successfully.", "user_id": user.ID}


@router.get("/users/me")
def get_my_profile(
    principal: Principal | None = Depends(get_principal),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    principal = require_principal(principal)
    return ahoi.identity.get_profile(principal.id)


@router.put("/users/me")
@router.patch("/users/me")
def update_my_profile(
    body: Any = Depends(json_body),
    principal: Principal | None = Depends(get_principal),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    principal = require_principal(principal)
    profile = ahoi.identity.update_profile(principal.id, body)
    return {"success": True, "message": "Profile updated.", "profile": profile}


@router.get("/users/{user_id}")
def get_user(
    user_id: int,
    principal: Principal | None = Depends(get_principal),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    ahoi.evaluator.authorize_user_management(principal)
    return ahoi.identity.get_user(user_id).model_dump(exclude={"capabilities"})


@router.put("/users/{user_id}")
@router.patch("/users/{user_id}")
def update_user(
    user_id: int,
    body: Any = Depends(json_body),
    principal: Principal | None = Depends(get_principal),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    """Change a user's email and/or role."""
    manager = ahoi.evaluator.authorize_user_management(principal)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object.")
    _guard_role_assignment(manager, body.get("role"))
    ahoi.identity.update_user(user_id, email=body.get("email"), role=body.get("role"))
    return {"success": True, "message": "User updated successfully."}


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    principal: Principal | None = Depends(get_principal),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    ahoi.evaluator.authorize_user_delete(principal, user_id)
    ahoi.identity.delete_user(user_id)
    return {"success": True, "message": "User deleted successfully."}


@router.get("/roles")
def list_roles(
    principal: Principal | None = Depends(get_principal),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, str]:
    """Role slugs and labels; built-in roles are shown to administrators only."""
    manager = ahoi.evaluator.authorize_user_management(principal)
    return ahoi.identity.list_roles(include_builtin=manager.is_administrator)
