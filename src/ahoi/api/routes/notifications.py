"""Outbound email on behalf of API clients."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ahoi.api.deps import get_ahoi, get_principal, request_params
from ahoi.auth.principal import Principal
from ahoi.core.engine import Ahoi

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/email")
def send_email(
    params: dict[str, Any] = Depends(request_params),
    principal: Principal | None = Depends(get_principal),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    ahoi.evaluator.authorize_email(principal)
    ahoi.mailer.send(params.get("to", ""), params.get("subject", ""), params.get("body", ""))
    return {"success": True, "message": "Email sent successfully."}
