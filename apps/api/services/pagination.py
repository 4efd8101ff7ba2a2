"""Opaque cursor pagination over (created_at, id) recency ordering."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from sqlalchemy import and_, or_

from config import settings
from services.errors import ValidationError


@dataclass
class Page:
    rows: List[Any] = field(default_factory=list)
    next_cursor: Optional[str] = None


def clamp_page_size(limit: Optional[int]) -> int:
    if limit is None:
        return max(int(settings.DEFAULT_PAGE_SIZE), 1)
    return max(1, min(int(limit), max(int(settings.MAX_PAGE_SIZE), 1)))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def encode_cursor(created_at: datetime, row_id: str) -> str:
    raw = json.dumps({"t": _as_utc(created_at).isoformat(), "id": row_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> Tuple[datetime, str]:
    padded = cursor + "=" * (-len(cursor) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
        return _as_utc(datetime.fromisoformat(payload["t"])), str(payload["id"])
    except (ValueError, KeyError, TypeError) as exc:
        raise ValidationError("invalid pagination cursor") from exc


def apply_recency_page(query, model, cursor: Optional[str], limit: int):
    """Order newest first and skip everything up to and including ``cursor``."""
    if cursor:
        created_at, row_id = decode_cursor(cursor)
        query = query.where(
            or_(
                model.created_at < created_at,
                and_(model.created_at == created_at, model.id < row_id),
            )
        )
    return query.order_by(model.created_at.desc(), model.id.desc()).limit(limit + 1)


def build_page(rows: List[Any], limit: int) -> Page:
    """Trim the look-ahead row fetched by ``apply_recency_page``."""
    if len(rows) <= limit:
        return Page(rows=list(rows), next_cursor=None)
    visible = list(rows[:limit])
    last = visible[-1]
    return Page(rows=visible, next_cursor=encode_cursor(last.created_at, last.id))
