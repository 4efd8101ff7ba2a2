"""Local attachment store and thumbnail URL helpers."""

from __future__ import annotations

import logging
import mimetypes
import secrets
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.attachment import Attachment

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_CONTENT_TYPE = "image/png"


def _sniff_image_type(data: bytes) -> Optional[str]:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


class AttachmentStore:
    """Writes blobs under ``root`` and records them as Attachment rows."""

    def __init__(self, root: Optional[str] = None) -> None:
        self.root = Path(root or settings.ATTACHMENT_STORAGE_DIR)

    async def store(
        self,
        db: AsyncSession,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> Attachment:
        resolved_type = content_type or _sniff_image_type(data) or DEFAULT_IMAGE_CONTENT_TYPE
        extension = mimetypes.guess_extension(resolved_type) or ".bin"
        attachment_id = str(uuid.uuid4())
        target_dir = self.root / attachment_id[:2]
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / f"{attachment_id}{extension}"
        target.write_bytes(data)

        attachment = Attachment(
            id=attachment_id,
            uuid=secrets.token_hex(20),
            context="account_default",
            content_type=resolved_type,
            file_path=str(target),
            file_size_bytes=len(data),
        )
        db.add(attachment)
        try:
            await db.flush()
        except Exception:
            target.unlink(missing_ok=True)
            raise
        logger.info("Stored attachment %s (%s, %d bytes)", attachment_id, resolved_type, len(data))
        return attachment


def thumbnail_url(attachment: Attachment, size: Optional[str] = None) -> str:
    size_param = quote(size or settings.THUMBNAIL_SIZE, safe="")
    base = settings.PUBLIC_BASE_URL.rstrip("/")
    return f"{base}/images/thumbnails/{attachment.id}/{attachment.uuid}?size={size_param}"


def get_attachment_store() -> AttachmentStore:
    return AttachmentStore()
