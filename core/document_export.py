# core/document_export.py
"""Assemble generated page images into a paginated PDF."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import structlog
from PIL import Image

import config
from core.exceptions import AssetFailure
from core.image_processing import image_bytes_to_pil
from models.narrative_models import ComicFace, PageType

logger = structlog.get_logger(__name__)

_TYPE_ORDER = {PageType.COVER: 0, PageType.STORY: 1, PageType.BACK_COVER: 2}


def exportable_pages(pages: Iterable[ComicFace]) -> list[ComicFace]:
    """Finished pages with an image, cover first, story pages ascending, back cover last."""
    ready = [p for p in pages if p.image is not None and not p.is_loading]
    return sorted(ready, key=lambda p: (_TYPE_ORDER[p.type], p.page_index))


def _fit_page(img: Image.Image, width: int, height: int) -> Image.Image:
    """Scale `img` into a fixed-size white page, preserving aspect ratio."""
    img = img.convert("RGB")
    scale = min(width / img.width, height / img.height)
    new_w, new_h = max(1, int(img.width * scale)), max(1, int(img.height * scale))
    resized = img.resize((new_w, new_h), resample=Image.LANCZOS)
    canvas = Image.new("RGB", (width, height), "white")
    canvas.paste(resized, ((width - new_w) // 2, (height - new_h) // 2))
    return canvas


def export_pdf(pages: Iterable[ComicFace], path: str | Path) -> int:
    """Write one PDF page per exportable image.

    Args:
        pages: The store's page collection (any order).
        path: Destination PDF path; parent directories are created.

    Returns:
        The number of pages written (0 writes nothing).
    """
    width, height = config.EXPORT_PAGE_WIDTH, config.EXPORT_PAGE_HEIGHT
    rendered: list[Image.Image] = []
    for face in exportable_pages(pages):
        try:
            rendered.append(_fit_page(image_bytes_to_pil(face.image.data), width, height))
        except AssetFailure as e:
            logger.warning("Skipping undecodable page in export", page=face.page_index, error=str(e))

    if not rendered:
        logger.warning("Nothing to export", path=str(path))
        return 0

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    first, rest = rendered[0], rendered[1:]
    # 72 dpi makes one pixel one PDF point
    first.save(target, format="PDF", save_all=True, append_images=rest, resolution=72.0)
    logger.info("Document exported", path=str(target), pages=len(rendered))
    return len(rendered)
