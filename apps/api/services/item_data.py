"""Deduplicated link metadata: lookup, reference counting and upvote sets."""

from __future__ import annotations

import logging
import re
import uuid
from typing import Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.collection import Collection
from models.collection_item import CollectionItem
from models.collection_item_data import CollectionItemData
from models.collection_item_upvote import CollectionItemUpvote
from services.access_policy import can_read_item
from services.errors import AuthorizationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ITEM_DETAIL_PATH_RE = re.compile(r"^/api/v1/collections/items/([A-Za-z0-9_-]+)/?$")
DEFAULT_PORTS = {"http": 80, "https": 443}


def _split(url: str):
    try:
        return urlsplit(url)
    except ValueError as exc:
        raise ValidationError("link_url is not a valid URL") from exc


def normalize_link_url(url: str) -> str:
    """Canonical form used as the dedup key for link metadata."""
    parts = _split(str(url or "").strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    netloc = host
    try:
        port = parts.port
    except ValueError as exc:
        raise ValidationError("link_url has an invalid port") from exc
    if port and port != DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{port}"
    if parts.username:
        credentials = parts.username + (f":{parts.password}" if parts.password else "")
        netloc = f"{credentials}@{netloc}"
    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def is_well_formed_link(url: Optional[str]) -> bool:
    text = str(url or "").strip()
    if not text:
        return False
    try:
        parts = urlsplit(text)
    except ValueError:
        return False
    allowed = {scheme.lower() for scheme in settings.ALLOWED_LINK_SCHEMES}
    if parts.scheme.lower() not in allowed or not parts.hostname:
        return False
    try:
        # raises on non-numeric or out of range ports
        parts.port
    except ValueError:
        return False
    return True


def validate_link_url(url: Optional[str]) -> str:
    text = str(url or "").strip()
    if not text:
        raise ValidationError("link_url is required")
    if not is_well_formed_link(text):
        allowed = ", ".join(settings.ALLOWED_LINK_SCHEMES)
        raise ValidationError(f"link_url must be an absolute URL using one of: {allowed}")
    return normalize_link_url(text)


def parse_clone_reference(url: Optional[str]) -> Optional[str]:
    """Return the item id when ``url`` points at an item-detail endpoint of this API."""
    text = str(url or "").strip()
    if not text:
        return None
    try:
        parts = urlsplit(text)
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https"):
        return None
    match = ITEM_DETAIL_PATH_RE.match(parts.path)
    return match.group(1) if match else None


async def get_item_data(db: AsyncSession, data_id: str) -> Optional[CollectionItemData]:
    result = await db.execute(select(CollectionItemData).where(CollectionItemData.id == data_id))
    return result.scalar_one_or_none()


async def _find_by_link(db: AsyncSession, link_url: str) -> Optional[CollectionItemData]:
    result = await db.execute(select(CollectionItemData).where(CollectionItemData.link_url == link_url))
    return result.scalar_one_or_none()


async def _increment_post_count(db: AsyncSession, data: CollectionItemData) -> CollectionItemData:
    await db.execute(
        update(CollectionItemData)
        .where(CollectionItemData.id == data.id)
        .values(post_count=CollectionItemData.post_count + 1)
    )
    await db.refresh(data)
    return data


async def _resolve_clone(db: AsyncSession, actor_id: str, source_item_id: str) -> CollectionItemData:
    result = await db.execute(
        select(CollectionItem, Collection)
        .join(Collection, Collection.id == CollectionItem.collection_id)
        .where(CollectionItem.id == source_item_id)
    )
    row = result.first()
    if row is None or not row[0].is_active or not row[1].is_active:
        raise NotFoundError("Source item not found")
    source_item, source_collection = row
    if not can_read_item(actor_id, source_item, source_collection):
        raise AuthorizationError()
    data = await get_item_data(db, source_item.collection_item_data_id)
    if data is None:
        raise NotFoundError("Source item not found")
    return data


async def resolve_for_create(
    db: AsyncSession,
    *,
    actor_id: str,
    link_url: Optional[str],
    new_item_id: str,
) -> Tuple[CollectionItemData, bool]:
    """Find or create the shared metadata for a new item.

    Clone references and already-known links reuse the existing record and bump
    its reference count; the record's root item never changes, so cloning a
    clone still points at the original root. Only a never-seen link produces a
    new record (``is_new``), which the caller must hand to enrichment.

    Every authorization and validation check runs before the first write.
    Changes are flushed but not committed.
    """
    source_item_id = parse_clone_reference(link_url)
    if source_item_id is not None:
        data = await _resolve_clone(db, actor_id, source_item_id)
        return await _increment_post_count(db, data), False

    normalized = validate_link_url(link_url)
    existing = await _find_by_link(db, normalized)
    if existing is not None:
        return await _increment_post_count(db, existing), False

    data = CollectionItemData(
        id=str(uuid.uuid4()),
        link_url=normalized,
        item_type="url",
        post_count=1,
        upvote_count=0,
        root_item_id=new_item_id,
        image_pending=True,
    )
    db.add(data)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent create of the same link.
        await db.rollback()
        existing = await _find_by_link(db, normalized)
        if existing is None:
            raise
        logger.info("Reusing concurrently created item data %s for %s", existing.id, normalized)
        return await _increment_post_count(db, existing), False
    return data, True


async def _shift_upvote_count(db: AsyncSession, data_id: str, delta: int) -> None:
    """Apply a membership delta; only called by the transaction that changed the (data, user) row."""
    await db.execute(
        update(CollectionItemData)
        .where(CollectionItemData.id == data_id)
        .values(upvote_count=CollectionItemData.upvote_count + delta)
    )


async def _find_upvote(db: AsyncSession, data_id: str, user_id: str) -> Optional[CollectionItemUpvote]:
    result = await db.execute(
        select(CollectionItemUpvote).where(
            CollectionItemUpvote.collection_item_data_id == data_id,
            CollectionItemUpvote.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def has_upvoted(db: AsyncSession, data_id: str, user_id: Optional[str]) -> bool:
    if not user_id:
        return False
    return await _find_upvote(db, data_id, user_id) is not None


async def upvote(db: AsyncSession, data: CollectionItemData, user_id: str) -> CollectionItemUpvote:
    """Add ``user_id`` to the upvote set. Repeating the call changes nothing."""
    existing = await _find_upvote(db, data.id, user_id)
    if existing is not None:
        return existing

    upvote_row = CollectionItemUpvote(
        id=str(uuid.uuid4()),
        collection_item_data_id=data.id,
        user_id=user_id,
    )
    db.add(upvote_row)
    try:
        await db.flush()
    except IntegrityError:
        data_id = data.id
        await db.rollback()
        await db.refresh(data)
        existing = await _find_upvote(db, data_id, user_id)
        if existing is None:
            raise
        return existing
    await _shift_upvote_count(db, data.id, 1)
    await db.commit()
    await db.refresh(data)
    return upvote_row


async def remove_upvote(db: AsyncSession, data: CollectionItemData, user_id: str) -> None:
    """Drop ``user_id`` from the upvote set; absent membership is a no-op."""
    removed = await db.execute(
        delete(CollectionItemUpvote).where(
            CollectionItemUpvote.collection_item_data_id == data.id,
            CollectionItemUpvote.user_id == user_id,
        )
    )
    if removed.rowcount:
        await _shift_upvote_count(db, data.id, -removed.rowcount)
    await db.commit()
    await db.refresh(data)
