# core/image_cache.py
"""Best-effort decode cache for generated page images.

The scheduler warms this cache after each batch so the next pages are ready
to display. Decoding runs in worker threads with bounded concurrency; a bad
image is logged and skipped, never raised.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping

import structlog
from PIL import Image

import config
from core.exceptions import AssetFailure
from core.image_processing import image_bytes_to_pil
from models.narrative_models import ImageAsset

logger = structlog.get_logger(__name__)


class ImagePreloadCache:
    """Decoded Pillow images keyed by page id."""

    def __init__(self, max_concurrent: int | None = None):
        self._cache: dict[str, Image.Image] = {}
        self._max_concurrent = max_concurrent or config.PRELOAD_CONCURRENCY

    def __contains__(self, key: str) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    async def _preload_one(self, key: str, asset: ImageAsset, semaphore: asyncio.Semaphore) -> None:
        async with semaphore:
            try:
                img = await asyncio.to_thread(image_bytes_to_pil, asset.data)
            except AssetFailure as e:
                logger.warning("Failed to preload image", key=key, error=str(e))
                return
            self._cache[key] = img

    async def preload_batch(self, images: Mapping[str, ImageAsset | None]) -> None:
        """Decode every new, non-empty image with at most N decodes at once."""
        pending = {k: v for k, v in images.items() if v is not None and v.data and k not in self._cache}
        if not pending:
            return
        semaphore = asyncio.Semaphore(self._max_concurrent)
        await asyncio.gather(*(self._preload_one(k, v, semaphore) for k, v in pending.items()))
        logger.debug("Image preload complete", requested=len(pending), cached=len(self._cache))

    def get(self, key: str) -> Image.Image | None:
        return self._cache.get(key)

    def clear(self) -> None:
        self._cache.clear()
        logger.info("Image cache cleared")
