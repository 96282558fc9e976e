"""Local-directory media storage for uploaded files."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path, PurePath
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy.orm import Session

from ahoi.core.types import MediaInfo
from ahoi.exceptions import MediaNotFound, StorageError, ValidationError
from ahoi.schema.models import Media, get_by_id

if TYPE_CHECKING:
    from ahoi.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)


def safe_file_name(file_name: str) -> str:
    """Base name of an uploaded file with path tricks removed."""
    name = PurePath((file_name or "").replace("\\", "/")).name
    name = name.replace("..", "_").strip()
    return name if name.strip("._") else "upload"


class MediaStore:
    """Writes uploads under ``root`` and records them in ``ahoi_api_media``."""

    def __init__(self, connection: DatabaseConnection, root: str | Path, base_url: str = "/media") -> None:
        self._connection = connection
        self._root = Path(root)
        self._base_url = base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    def _get_session(self) -> Session:
        return self._connection.get_session()

    def _info(self, media: Media) -> MediaInfo:
        return MediaInfo(
            id=media.id,
            url=f"{self._base_url}/{media.stored_name}",
            mime_type=media.mime_type,
            title=media.title,
            file_name=media.stored_name,
        )

    def store(self, owner_id: int, file_name: str, data: bytes, content_type: str | None = None) -> MediaInfo:
        """Save an upload and return its public description.

        Raises:
            ValidationError: If no file content was sent
            StorageError: If the file cannot be written
        """
        if not file_name or not data:
            raise ValidationError("No file was uploaded.")
        original = safe_file_name(file_name)
        stored_name = f"{uuid4().hex[:12]}_{original}"
        mime_type = content_type or mimetypes.guess_type(original)[0] or "application/octet-stream"

        try:
            self._root.mkdir(parents=True, exist_ok=True)
            (self._root / stored_name).write_bytes(data)
        except OSError as e:
            logger.error(f"Writing upload {stored_name} failed: {e}")
            raise StorageError("Could not store the uploaded file.") from e

        media = Media(
            owner_id=owner_id,
            file_name=original,
            stored_name=stored_name,
            mime_type=mime_type,
            title=PurePath(original).stem,
            size=len(data),
        )
        with self._get_session() as session:
            session.add(media)
            session.commit()
            logger.info(f"Stored upload {media.id} ({stored_name}, {len(data)} bytes) for user {owner_id}")
            return self._info(media)

    def owner_of(self, media_id: int) -> int:
        with self._get_session() as session:
            media = get_by_id(session, Media, media_id)
            if media is None:
                raise MediaNotFound(media_id)
            return media.owner_id

    def get(self, media_id: int) -> MediaInfo:
        with self._get_session() as session:
            media = get_by_id(session, Media, media_id)
            if media is None:
                raise MediaNotFound(media_id)
            return self._info(media)

    def delete(self, media_id: int) -> None:
        """Remove the file and its record."""
        with self._get_session() as session:
            media = get_by_id(session, Media, media_id)
            if media is None:
                raise MediaNotFound(media_id)
            path = self._root / media.stored_name
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Deleting {path} failed: {e}")
                raise StorageError("Could not delete the file.") from e
            session.delete(media)
            session.commit()
        logger.info(f"Deleted upload {media_id}")
