"""Collection persistence with soft-delete and visibility-scoped reads."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.collection import COLLECTION_VISIBILITIES, Collection
from services.access_policy import can_access
from services.errors import AuthorizationError, NotFoundError, ValidationError
from services.pagination import Page, apply_recency_page, build_page, clamp_page_size

logger = logging.getLogger(__name__)

MAX_COLLECTION_NAME_LENGTH = 255


def _normalize_name(name: Any) -> str:
    text = str(name or "").strip()
    if not text:
        raise ValidationError("name is required")
    if len(text) > MAX_COLLECTION_NAME_LENGTH:
        raise ValidationError(f"name must be {MAX_COLLECTION_NAME_LENGTH} characters or less")
    return text


def _normalize_visibility(visibility: Any) -> str:
    value = str(visibility or "").strip().lower()
    if value not in COLLECTION_VISIBILITIES:
        raise ValidationError("visibility must be one of: " + ", ".join(COLLECTION_VISIBILITIES))
    return value


def serialize_collection(collection: Collection) -> Dict[str, Any]:
    return {
        "id": collection.id,
        "name": collection.name,
        "visibility": collection.visibility,
    }


async def load_collection(db: AsyncSession, collection_id: str) -> Optional[Collection]:
    """Raw lookup, no access filtering. Deleted rows are returned too."""
    result = await db.execute(select(Collection).where(Collection.id == collection_id))
    return result.scalar_one_or_none()


async def get_readable_collection(db: AsyncSession, actor_id: str, collection_id: str) -> Collection:
    """Return an active collection the actor may read; conceal everything else."""
    collection = await load_collection(db, collection_id)
    if not can_access(actor_id, collection, "read"):
        raise NotFoundError("Collection not found")
    return collection


async def get_writable_collection(db: AsyncSession, actor_id: str, collection_id: str) -> Collection:
    collection = await get_readable_collection(db, actor_id, collection_id)
    if not can_access(actor_id, collection, "write"):
        raise AuthorizationError()
    return collection


async def create_collection(
    *,
    owner_id: str,
    name: Any,
    visibility: Any,
    db: AsyncSession,
) -> Collection:
    collection = Collection(
        id=str(uuid.uuid4()),
        user_id=owner_id,
        name=_normalize_name(name),
        visibility=_normalize_visibility(visibility),
        workflow_state="active",
    )
    db.add(collection)
    await db.commit()
    logger.info("Created %s collection %s for user %s", collection.visibility, collection.id, owner_id)
    return collection


async def get_collection(*, actor_id: str, collection_id: str, db: AsyncSession) -> Collection:
    return await get_readable_collection(db, actor_id, collection_id)


async def update_collection(
    *,
    actor_id: str,
    collection_id: str,
    patch: Mapping[str, Any],
    db: AsyncSession,
) -> Collection:
    """Rename a collection. Visibility is fixed at creation time."""
    collection = await get_writable_collection(db, actor_id, collection_id)
    if "visibility" in patch:
        raise ValidationError("visibility cannot be changed after creation")
    if "name" in patch:
        collection.name = _normalize_name(patch["name"])
    await db.commit()
    return collection


async def delete_collection(*, actor_id: str, collection_id: str, db: AsyncSession) -> Collection:
    """Soft delete. Contained items keep their own workflow state."""
    collection = await get_writable_collection(db, actor_id, collection_id)
    collection.workflow_state = "deleted"
    collection.deleted_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("Deleted collection %s", collection_id)
    return collection


async def list_collections(
    *,
    actor_id: str,
    owner_id: str,
    db: AsyncSession,
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
) -> Page:
    """List ``owner_id``'s active collections visible to ``actor_id``, newest first."""
    page_size = clamp_page_size(limit)
    query = select(Collection).where(
        Collection.user_id == owner_id,
        Collection.workflow_state == "active",
    )
    if actor_id != owner_id:
        query = query.where(Collection.visibility == "public")
    result = await db.execute(apply_recency_page(query, Collection, cursor, page_size))
    rows = [row for row in result.scalars().all() if can_access(actor_id, row, "read")]
    return build_page(rows, page_size)
