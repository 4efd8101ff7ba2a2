"""Collection item lifecycle: create/clone, read, edit, delete and upvotes."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.attachment import Attachment
from models.collection import Collection
from models.collection_item import CollectionItem
from models.collection_item_data import CollectionItemData
from models.collection_item_upvote import CollectionItemUpvote
from services.access_policy import can_access, can_modify_item, can_read_item
from services.attachments import thumbnail_url
from services.collections import get_readable_collection, get_writable_collection
from services.enrichment_queue import EnrichmentJob, enqueue_enrichment_job
from services.errors import AuthorizationError, NotFoundError, ValidationError
from services.item_data import (
    get_item_data,
    is_well_formed_link,
    remove_upvote,
    resolve_for_create,
    upvote,
)
from services.pagination import Page, apply_recency_page, build_page, clamp_page_size

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 10000
MUTABLE_ITEM_FIELDS = ("description",)


def item_api_url(item_id: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/api/v1/collections/items/{item_id}"


def _normalize_description(description: Any) -> Optional[str]:
    if description is None:
        return None
    text = str(description)
    if len(text) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"description must be {MAX_DESCRIPTION_LENGTH} characters or less")
    return text


def serialize_item(
    item: CollectionItem,
    data: CollectionItemData,
    attachment: Optional[Attachment],
    upvoted_by_user: bool = False,
) -> Dict[str, Any]:
    return {
        "id": item.id,
        "collection_id": item.collection_id,
        "item_type": data.item_type,
        "link_url": data.link_url,
        "post_count": int(data.post_count or 0),
        "upvote_count": int(data.upvote_count or 0),
        "upvoted_by_user": bool(upvoted_by_user),
        "root_item_id": data.root_item_id,
        "image_url": thumbnail_url(attachment) if attachment is not None else None,
        "image_pending": bool(data.image_pending),
        "html_preview": data.html_preview,
        "description": item.description,
        "url": item_api_url(item.id),
    }


async def _load_attachments(db: AsyncSession, attachment_ids: Iterable[Optional[str]]) -> Dict[str, Attachment]:
    ids = {value for value in attachment_ids if value}
    if not ids:
        return {}
    result = await db.execute(select(Attachment).where(Attachment.id.in_(ids)))
    return {row.id: row for row in result.scalars().all()}


async def _upvoted_data_ids(db: AsyncSession, actor_id: Optional[str], data_ids: Iterable[str]) -> Set[str]:
    ids = set(data_ids)
    if not actor_id or not ids:
        return set()
    result = await db.execute(
        select(CollectionItemUpvote.collection_item_data_id).where(
            CollectionItemUpvote.user_id == actor_id,
            CollectionItemUpvote.collection_item_data_id.in_(ids),
        )
    )
    return {row[0] for row in result.all()}


async def present_items(
    db: AsyncSession,
    actor_id: Optional[str],
    rows: List[Tuple[CollectionItem, CollectionItemData]],
) -> List[Dict[str, Any]]:
    attachments = await _load_attachments(db, (data.image_attachment_id for _, data in rows))
    upvoted = await _upvoted_data_ids(db, actor_id, (data.id for _, data in rows))
    return [
        serialize_item(
            item,
            data,
            attachments.get(data.image_attachment_id) if data.image_attachment_id else None,
            data.id in upvoted,
        )
        for item, data in rows
    ]


async def present_item(db: AsyncSession, actor_id: Optional[str], item: CollectionItem) -> Dict[str, Any]:
    data = await get_item_data(db, item.collection_item_data_id)
    if data is None:
        raise NotFoundError("Item not found")
    payloads = await present_items(db, actor_id, [(item, data)])
    return payloads[0]


async def _load_item_with_collection(
    db: AsyncSession,
    item_id: str,
) -> Tuple[Optional[CollectionItem], Optional[Collection]]:
    result = await db.execute(
        select(CollectionItem, Collection)
        .join(Collection, Collection.id == CollectionItem.collection_id)
        .where(CollectionItem.id == item_id)
    )
    row = result.first()
    if row is None:
        return None, None
    return row[0], row[1]


async def get_visible_item(db: AsyncSession, actor_id: str, item_id: str) -> Tuple[CollectionItem, Collection]:
    """Active item in an active collection the actor can read; NotFound otherwise."""
    item, collection = await _load_item_with_collection(db, item_id)
    if item is None or not can_read_item(actor_id, item, collection):
        raise NotFoundError("Item not found")
    return item, collection


async def _get_modifiable_item(db: AsyncSession, actor_id: str, item_id: str) -> CollectionItem:
    item, collection = await get_visible_item(db, actor_id, item_id)
    if not can_modify_item(actor_id, item, collection):
        raise AuthorizationError()
    return item


async def create_item_service(
    *,
    actor_id: str,
    collection_id: str,
    link_url: Optional[str],
    description: Any = None,
    image_url: Optional[str] = None,
    db: AsyncSession,
) -> Dict[str, Any]:
    """Create an item, reusing shared metadata when the link is already known.

    Enrichment is only enqueued for freshly created metadata. Queue outages are
    logged and leave the record pending for ``recover_pending_item_data``.
    """
    collection = await get_writable_collection(db, actor_id, collection_id)
    target_collection_id = collection.id
    normalized_description = _normalize_description(description)
    explicit_image = str(image_url).strip() if image_url else None
    if explicit_image and not is_well_formed_link(explicit_image):
        raise ValidationError("image_url must be an absolute http(s) URL")

    item_id = str(uuid.uuid4())
    data, is_new = await resolve_for_create(db, actor_id=actor_id, link_url=link_url, new_item_id=item_id)
    item = CollectionItem(
        id=item_id,
        collection_id=target_collection_id,
        user_id=actor_id,
        collection_item_data_id=data.id,
        description=normalized_description,
        workflow_state="active",
    )
    db.add(item)
    await db.commit()
    logger.info(
        "Created item %s in collection %s (data %s, new=%s)",
        item_id,
        target_collection_id,
        data.id,
        is_new,
    )

    if is_new:
        try:
            enqueue_enrichment_job(EnrichmentJob(item_data_id=data.id, image_url=explicit_image))
        except Exception as exc:
            logger.warning("Enrichment queue unavailable for item data %s: %s", data.id, exc)

    payloads = await present_items(db, actor_id, [(item, data)])
    return payloads[0]


async def get_item_service(*, actor_id: str, item_id: str, db: AsyncSession) -> Dict[str, Any]:
    item, _ = await get_visible_item(db, actor_id, item_id)
    return await present_item(db, actor_id, item)


async def update_item_service(
    *,
    actor_id: str,
    item_id: str,
    patch: Mapping[str, Any],
    db: AsyncSession,
) -> Dict[str, Any]:
    """Apply the description; link, type and image belong to creation and enrichment."""
    item = await _get_modifiable_item(db, actor_id, item_id)
    ignored = sorted(key for key in patch if key not in MUTABLE_ITEM_FIELDS)
    if ignored:
        logger.debug("Ignoring immutable item fields %s on %s", ignored, item_id)
    if "description" in patch:
        item.description = _normalize_description(patch["description"])
    await db.commit()
    return await present_item(db, actor_id, item)


async def delete_item_service(*, actor_id: str, item_id: str, db: AsyncSession) -> Dict[str, Any]:
    """Soft delete. The shared data's post_count is left as is."""
    item = await _get_modifiable_item(db, actor_id, item_id)
    item.workflow_state = "deleted"
    item.deleted_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("Deleted item %s", item_id)
    return await present_item(db, actor_id, item)


async def list_items_service(
    *,
    actor_id: str,
    collection_id: str,
    db: AsyncSession,
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    collection = await get_readable_collection(db, actor_id, collection_id)
    page_size = clamp_page_size(limit)
    query = select(CollectionItem).where(
        CollectionItem.collection_id == collection.id,
        CollectionItem.workflow_state == "active",
    )
    result = await db.execute(apply_recency_page(query, CollectionItem, cursor, page_size))
    page: Page = build_page(result.scalars().all(), page_size)

    data_ids = {item.collection_item_data_id for item in page.rows}
    datas: Dict[str, CollectionItemData] = {}
    if data_ids:
        data_result = await db.execute(select(CollectionItemData).where(CollectionItemData.id.in_(data_ids)))
        datas = {row.id: row for row in data_result.scalars().all()}
    rows = [(item, datas[item.collection_item_data_id]) for item in page.rows if item.collection_item_data_id in datas]
    return await present_items(db, actor_id, rows), page.next_cursor


async def _get_upvotable_data(db: AsyncSession, actor_id: str, item_id: str) -> Tuple[CollectionItem, CollectionItemData]:
    item, collection = await get_visible_item(db, actor_id, item_id)
    if not can_access(actor_id, collection, "upvote"):
        raise NotFoundError("Item not found")
    data = await get_item_data(db, item.collection_item_data_id)
    if data is None:
        raise NotFoundError("Item not found")
    return item, data


async def upvote_item_service(*, actor_id: str, item_id: str, db: AsyncSession) -> Dict[str, Any]:
    item, data = await _get_upvotable_data(db, actor_id, item_id)
    target_item_id = item.id
    row = await upvote(db, data, actor_id)
    return {
        "item_id": target_item_id,
        "root_item_id": data.root_item_id,
        "user_id": actor_id,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


async def remove_item_upvote_service(*, actor_id: str, item_id: str, db: AsyncSession) -> None:
    _, data = await _get_upvotable_data(db, actor_id, item_id)
    await remove_upvote(db, data, actor_id)
