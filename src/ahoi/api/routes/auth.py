"""Token issuance and public registration."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status

from ahoi.api.deps import get_ahoi, get_principal, request_params
from ahoi.auth.policy import require_principal
from ahoi.auth.principal import Principal
from ahoi.core.engine import Ahoi
from ahoi.exceptions import ValidationError

router = APIRouter(tags=["auth"])


@router.post("/token")
def generate_token(
    params: dict[str, Any] = Depends(request_params),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    """Exchange a username (or email) and password for a bearer token."""
    username = params.get("username")
    password = params.get("password")
    if not username or not password:
        raise ValidationError("Username and password are required.")

    user = ahoi.identity.authenticate(username, password)
    token = ahoi.tokens.issue(user.ID, user.roles)
    return {
        "success": True,
        "token": token,
        "user": {
            "id": user.ID,
            "email": user.user_email,
            "display_name": user.display_name,
            "roles": user.roles,
        },
    }


@router.get("/token/validate")
def validate_token(principal: Principal | None = Depends(get_principal)) -> dict[str, Any]:
    principal = require_principal(principal)
    return {"success": True, "message": "Token is valid.", "user_id": principal.id}


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register_user(
    params: dict[str, Any] = Depends(request_params),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    """Public self-registration; fires ``user.created``."""
    user = ahoi.identity.register(
        params.get("username"),
        params.get("email"),
        params.get("password"),
        role=params.get("role"),
        display_name=params.get("display_name"),
    )
    return {"success": True, "message": "User registered successfully.", "user_id": user.ID}
