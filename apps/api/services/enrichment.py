"""Background enrichment of item data: preview image, type and html snippet.

A job resolves an image through an ordered strategy chain, first image wins:

1. explicit image url supplied at item creation,
2. third-party link preview lookup (also supplies item_type and html_preview),
3. headless page snapshot of the link itself.

The job re-reads the record before doing anything and finishes with a single
conditional UPDATE guarded by ``image_pending``. Replays and concurrent runs
for the same record therefore never clobber a result that already landed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import update
from sqlalchemy.future import select

from config import settings
from database import async_session_maker
from models.collection_item_data import CollectionItemData
from services.attachments import AttachmentStore, get_attachment_store
from services.errors import TransientFetchError
from services.fetchers import (
    BaseLinkPreviewService,
    BaseSnapshotService,
    HttpFetcher,
    get_http_fetcher,
    get_link_preview_service,
    get_snapshot_service,
)
from services.item_data import is_well_formed_link

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentContext:
    item_data_id: str
    link_url: str
    image_url: Optional[str]
    fetcher: HttpFetcher
    preview_service: BaseLinkPreviewService
    snapshot_service: BaseSnapshotService


@dataclass
class EnrichmentResult:
    image_bytes: Optional[bytes] = None
    content_type: Optional[str] = None
    item_type: Optional[str] = None
    html_preview: Optional[str] = None
    source: Optional[str] = None
    attempted: List[str] = field(default_factory=list)
    transient_errors: List[str] = field(default_factory=list)

    @property
    def has_image(self) -> bool:
        return bool(self.image_bytes)


Strategy = Callable[[EnrichmentContext, EnrichmentResult], Awaitable[bool]]


async def explicit_image_strategy(ctx: EnrichmentContext, result: EnrichmentResult) -> bool:
    if not ctx.image_url:
        return False
    try:
        response = await ctx.fetcher.get(ctx.image_url)
    except TransientFetchError as exc:
        if settings.EXPLICIT_IMAGE_FALLBACK:
            logger.warning("Explicit image %s failed for %s; falling back", ctx.image_url, ctx.item_data_id)
            result.transient_errors.append(f"explicit_image: {exc}")
            return False
        raise
    result.image_bytes = response.body
    result.content_type = response.content_type
    return True


async def link_preview_strategy(ctx: EnrichmentContext, result: EnrichmentResult) -> bool:
    try:
        preview = await ctx.preview_service.lookup(ctx.link_url)
    except TransientFetchError as exc:
        logger.warning("Link preview lookup failed for %s: %s", ctx.item_data_id, exc)
        result.transient_errors.append(f"link_preview: {exc}")
        return False
    if preview.item_type:
        result.item_type = preview.item_type
    if preview.html:
        result.html_preview = preview.html
    if not preview.images:
        return False
    try:
        response = await ctx.fetcher.get(preview.images[0])
    except TransientFetchError as exc:
        logger.warning("Preview image fetch failed for %s: %s", ctx.item_data_id, exc)
        result.transient_errors.append(f"preview_image: {exc}")
        return False
    result.image_bytes = response.body
    result.content_type = response.content_type
    return True


async def snapshot_strategy(ctx: EnrichmentContext, result: EnrichmentResult) -> bool:
    image = await ctx.snapshot_service.capture(ctx.link_url)
    if not image:
        return False
    result.image_bytes = image
    result.content_type = "image/png"
    return True


STRATEGIES: List[tuple] = [
    ("explicit_image", explicit_image_strategy),
    ("link_preview", link_preview_strategy),
    ("snapshot", snapshot_strategy),
]


async def run_strategies(ctx: EnrichmentContext, strategies: Optional[List[tuple]] = None) -> EnrichmentResult:
    """Try each strategy in order until one produces image bytes."""
    result = EnrichmentResult()
    if not is_well_formed_link(ctx.link_url):
        logger.info("Skipping enrichment strategies for %s: malformed link", ctx.item_data_id)
        return result
    for name, strategy in strategies or STRATEGIES:
        result.attempted.append(name)
        if await strategy(ctx, result):
            result.source = name
            logger.info("Enrichment for %s resolved an image via %s", ctx.item_data_id, name)
            break
    return result


def _discard(path: Optional[Path]) -> None:
    if path is not None:
        path.unlink(missing_ok=True)


async def process_item_data_enrichment_job_async(
    item_data_id: str,
    image_url: Optional[str] = None,
    *,
    fetcher: Optional[HttpFetcher] = None,
    preview_service: Optional[BaseLinkPreviewService] = None,
    snapshot_service: Optional[BaseSnapshotService] = None,
    attachment_store: Optional[AttachmentStore] = None,
) -> bool:
    """Enrich one record. Returns True when this run moved it out of pending."""
    async with async_session_maker() as db:
        record = await db.execute(select(CollectionItemData).where(CollectionItemData.id == item_data_id))
        data = record.scalar_one_or_none()
        if data is None:
            logger.warning("Item data %s not found; dropping enrichment job", item_data_id)
            return False
        if not data.image_pending:
            logger.info("Item data %s already enriched; nothing to do", item_data_id)
            return False
        link_url = data.link_url

    ctx = EnrichmentContext(
        item_data_id=item_data_id,
        link_url=link_url,
        image_url=image_url,
        fetcher=fetcher or get_http_fetcher(),
        preview_service=preview_service or get_link_preview_service(),
        snapshot_service=snapshot_service or get_snapshot_service(),
    )
    outcome = await run_strategies(ctx)
    if not outcome.has_image and outcome.transient_errors:
        # leave the record pending so the job is retried
        raise TransientFetchError(
            f"Enrichment for {item_data_id} found no image after transient failures: "
            + "; ".join(outcome.transient_errors)
        )

    store = attachment_store or get_attachment_store()
    async with async_session_maker() as db:
        values = {"image_pending": False}
        stored_path: Optional[Path] = None
        if outcome.item_type:
            values["item_type"] = outcome.item_type
        if outcome.html_preview:
            values["html_preview"] = outcome.html_preview
        if outcome.has_image:
            attachment = await store.store(db, outcome.image_bytes, outcome.content_type)
            values["image_attachment_id"] = attachment.id
            stored_path = Path(attachment.file_path)

        try:
            applied = await db.execute(
                update(CollectionItemData)
                .where(
                    CollectionItemData.id == item_data_id,
                    CollectionItemData.image_pending.is_(True),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if applied.rowcount == 0:
                await db.rollback()
                _discard(stored_path)
                logger.info("Item data %s was enriched by a concurrent run; discarding result", item_data_id)
                return False
            await db.commit()
        except Exception:
            _discard(stored_path)
            raise

    if not outcome.has_image:
        logger.info("Enrichment for %s exhausted all strategies without an image", item_data_id)
    return True


def process_item_data_enrichment_job(item_data_id: str, image_url: Optional[str] = None) -> bool:
    """RQ worker entrypoint for enrichment jobs; failures propagate for RQ retries."""
    try:
        return asyncio.run(process_item_data_enrichment_job_async(item_data_id, image_url))
    except Exception:
        logger.exception("Enrichment job for item data %s failed", item_data_id)
        raise
