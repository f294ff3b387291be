from __future__ import annotations

import asyncio
import base64
import dataclasses
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import httpx

from archiver.errors import AlbumFetchFailed, ImageDownloadFailed
from archiver.models import FEATURED_PHOTO_SIZE, EventRecord, Photo
from archiver.rate_limit import RateLimiter, Sleep

logger = logging.getLogger(__name__)

AlbumFetcher = Callable[[str, int], Awaitable[List[Photo]]]

ALBUM_PHOTO_CAP = 20
IMAGE_DELAY_S = 0.05
DEFAULT_CONTENT_TYPE = "image/jpeg"


class ImageEmbedder:
    """
    Best-effort enrichment: inline featured and album photos as base64 data URIs.

    Records are processed by at most `concurrency` tasks at a time; every download,
    whichever task issues it, is paced by one shared RateLimiter. Failures are logged
    and leave the affected photo in its remote form. The returned list always has
    the same length and id order as the input.
    """
    def __init__(
        self,
        album_fetcher: Optional[AlbumFetcher] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout_s: float = 10.0,
        concurrency: int = 4,
        images_per_second: float = 20.0,
        album_cap: int = ALBUM_PHOTO_CAP,
        delay_s: float = IMAGE_DELAY_S,
        pacer: Optional[RateLimiter] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._album_fetcher = album_fetcher
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout_s, follow_redirects=True)
        self.timeout_s = timeout_s
        self.concurrency = concurrency
        self.album_cap = album_cap
        self.delay_s = delay_s
        self._pacer = pacer or RateLimiter(images_per_second, sleep=sleep)
        self._sleep = sleep

    async def __aenter__(self) -> "ImageEmbedder":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def download_as_data_uri(self, url: str) -> str:
        """Fetch `url` and return a data: URI. Raises ImageDownloadFailed."""
        await self._pacer.wait()
        try:
            resp = await self._http.get(url, timeout=self.timeout_s)
            resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ImageDownloadFailed(url, type(e).__name__) from e

        content_type = (resp.headers.get("content-type") or DEFAULT_CONTENT_TYPE).split(";")[0].strip()
        payload = base64.b64encode(resp.content).decode("ascii")
        return f"data:{content_type or DEFAULT_CONTENT_TYPE};base64,{payload}"

    async def _inline(self, photo: Photo) -> Optional[Photo]:
        url = photo.url(FEATURED_PHOTO_SIZE)
        try:
            data_uri = await self.download_as_data_uri(url)
        except ImageDownloadFailed as e:
            logger.warning("Failed to download image: %s (%s)", url, e)
            return None
        return Photo(id="", base_url=data_uri)

    async def _album_photos(self, event: EventRecord) -> Tuple[Photo, ...]:
        album = event.photo_album
        try:
            candidates = await self._album_fetcher(event.id, album.photo_count)
        except AlbumFetchFailed as e:
            logger.warning("%s", e)
            return ()

        if len(candidates) < album.photo_count:
            logger.info(
                "Album for event %s returned %d of %d expected photos", event.id, len(candidates), album.photo_count
            )

        inlined: List[Photo] = []
        for i, photo in enumerate(candidates[: self.album_cap]):
            if i:
                await self._sleep(self.delay_s)
            result = await self._inline(photo)
            if result is not None:
                inlined.append(result)
        return tuple(inlined)

    async def _embed_one(self, event: EventRecord) -> Tuple[EventRecord, int]:
        changes = {}
        downloaded = 0

        featured = event.featured_photo
        has_featured = featured is not None and bool(featured.base_url) and bool(featured.id) and not featured.is_inlined
        if has_featured:
            inlined = await self._inline(featured)
            if inlined is not None:
                changes["featured_photo"] = inlined
                downloaded += 1

        album = event.photo_album
        if self._album_fetcher is not None and album is not None and album.photo_count > 0:
            if has_featured:
                await self._sleep(self.delay_s)
            photos = await self._album_photos(event)
            if photos:
                changes["photo_album"] = dataclasses.replace(album, photos=photos)
                downloaded += len(photos)
            await self._sleep(self.delay_s)

        if not changes:
            return event, downloaded
        return dataclasses.replace(event, **changes), downloaded

    async def embed_images(self, events: List[EventRecord]) -> List[EventRecord]:
        logger.info("Downloading and embedding images for %d events...", len(events))
        sem = asyncio.Semaphore(self.concurrency)

        async def worker(event: EventRecord) -> Tuple[EventRecord, int]:
            async with sem:
                return await self._embed_one(event)

        results = await asyncio.gather(*(worker(e) for e in events))
        total = sum(count for _, count in results)
        logger.info("Downloaded and embedded %d images", total)
        return [event for event, _ in results]
