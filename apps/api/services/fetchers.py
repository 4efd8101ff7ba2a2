"""Pluggable remote fetchers used by the enrichment pipeline."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from config import settings
from services.errors import TransientFetchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResponse:
    status_code: int
    body: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class LinkPreview:
    item_type: Optional[str] = None
    images: List[str] = field(default_factory=list)
    html: Optional[str] = None


class HttpFetcher:
    """Plain GET over httpx. Non-2xx, oversize and transport errors are transient."""

    def __init__(
        self,
        *,
        timeout: Optional[float] = None,
        max_bytes: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = float(timeout if timeout is not None else settings.HTTP_FETCH_TIMEOUT_SECONDS)
        self.max_bytes = int(max_bytes if max_bytes is not None else settings.MAX_IMAGE_BYTES)
        self.transport = transport

    def _too_large(self, url: str, size: int) -> TransientFetchError:
        return TransientFetchError(f"GET {url} exceeded {self.max_bytes} bytes ({size})")

    async def get(self, url: str) -> FetchResponse:
        """Stream the body, giving up as soon as it passes ``max_bytes``."""
        chunks: List[bytes] = []
        received = 0
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                async with client.stream("GET", url) as response:
                    if response.status_code < 200 or response.status_code >= 300:
                        raise TransientFetchError(f"GET {url} returned HTTP {response.status_code}")
                    declared = response.headers.get("content-length")
                    if declared and declared.isdigit() and int(declared) > self.max_bytes:
                        raise self._too_large(url, int(declared))
                    async for chunk in response.aiter_bytes():
                        received += len(chunk)
                        if received > self.max_bytes:
                            raise self._too_large(url, received)
                        chunks.append(chunk)
                    content_type = response.headers.get("content-type") or ""
                    status_code = response.status_code
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"GET {url} failed: {exc}") from exc

        return FetchResponse(
            status_code=status_code,
            body=b"".join(chunks),
            content_type=content_type.split(";")[0].strip() or None,
        )


class BaseLinkPreviewService(ABC):
    provider_name: str

    @abstractmethod
    async def lookup(self, url: str) -> LinkPreview:
        raise NotImplementedError


class DisabledLinkPreviewService(BaseLinkPreviewService):
    provider_name = "disabled"

    async def lookup(self, url: str) -> LinkPreview:
        return LinkPreview()


class EmbedlyLinkPreviewService(BaseLinkPreviewService):
    """oEmbed/extract style lookup returning type, image candidates and html."""

    provider_name = "embedly"

    def __init__(self, *, api_url: str, api_key: str, timeout: Optional[float] = None) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = float(timeout if timeout is not None else settings.HTTP_FETCH_TIMEOUT_SECONDS)

    @staticmethod
    def _parse(payload: Dict[str, Any]) -> LinkPreview:
        images: List[str] = []
        for entry in payload.get("images") or []:
            candidate = entry.get("url") if isinstance(entry, dict) else entry
            if candidate:
                images.append(str(candidate))
        if not images and payload.get("thumbnail_url"):
            images.append(str(payload["thumbnail_url"]))
        html = payload.get("html")
        return LinkPreview(
            item_type=str(payload["type"]) if payload.get("type") else None,
            images=images,
            html=str(html) if html else None,
        )

    async def lookup(self, url: str) -> LinkPreview:
        params = {"key": self.api_key, "url": url, "maxwidth": 640}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.api_url, params=params)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TransientFetchError(f"link preview lookup for {url} failed: {exc}") from exc
        if not isinstance(payload, dict):
            raise TransientFetchError(f"link preview lookup for {url} returned a non-object payload")
        return self._parse(payload)


class BaseSnapshotService(ABC):
    @abstractmethod
    async def capture(self, url: str) -> Optional[bytes]:
        raise NotImplementedError


class DisabledSnapshotService(BaseSnapshotService):
    async def capture(self, url: str) -> Optional[bytes]:
        return None


class HttpSnapshotService(BaseSnapshotService):
    """Headless browser snapshot sidecar: POST a URL, receive PNG bytes."""

    def __init__(self, *, service_url: str, timeout: Optional[float] = None) -> None:
        self.service_url = service_url
        self.timeout = float(timeout if timeout is not None else settings.HTTP_FETCH_TIMEOUT_SECONDS) * 4

    async def capture(self, url: str) -> Optional[bytes]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.service_url, json={"url": url, "format": "png"})
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"snapshot of {url} failed: {exc}") from exc
        return response.content or None


def get_http_fetcher() -> HttpFetcher:
    return HttpFetcher()


def get_link_preview_service() -> BaseLinkPreviewService:
    if not (settings.LINK_PREVIEW_API_KEY or "").strip():
        return DisabledLinkPreviewService()
    return EmbedlyLinkPreviewService(
        api_url=settings.LINK_PREVIEW_API_URL,
        api_key=settings.LINK_PREVIEW_API_KEY,
    )


def get_snapshot_service() -> BaseSnapshotService:
    if not (settings.SNAPSHOT_SERVICE_URL or "").strip():
        return DisabledSnapshotService()
    return HttpSnapshotService(service_url=settings.SNAPSHOT_SERVICE_URL)
