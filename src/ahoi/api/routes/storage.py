"""File uploads into the media store."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, UploadFile, status

from ahoi.api.deps import get_ahoi, get_principal
from ahoi.auth.policy import require_principal
from ahoi.auth.principal import Principal
from ahoi.core.engine import Ahoi
from ahoi.exceptions import ValidationError

router = APIRouter(prefix="/storage", tags=["storage"])


@router.post("/upload", status_code=status.HTTP_201_CREATED)
def upload_file(
    file: UploadFile | None = File(None),
    principal: Principal | None = Depends(get_principal),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    uploader = ahoi.evaluator.authorize_upload(principal)
    if file is None:
        raise ValidationError("No file was uploaded.")
    media = ahoi.media.store(uploader.id, file.filename or "", file.file.read(), file.content_type)
    return media.model_dump()


@router.delete("/{media_id}")
def delete_file(
    media_id: int,
    principal: Principal | None = Depends(get_principal),
    ahoi: Ahoi = Depends(get_ahoi),
) -> dict[str, Any]:
    caller = require_principal(principal)
    ahoi.evaluator.authorize_media_delete(caller, ahoi.media.owner_of(media_id))
    ahoi.media.delete(media_id)
    return {"success": True, "message": "File deleted successfully."}
