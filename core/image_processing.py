# core/image_processing.py
"""Pillow helpers for splitting spreads and cropping identity references."""

from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError

from core.exceptions import AssetFailure
from models.narrative_models import ImageAsset


def image_bytes_to_pil(data: bytes) -> Image.Image:
    """Decode image bytes, raising `AssetFailure` for unreadable data."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise AssetFailure("Image data could not be decoded", details={"error": str(e)}) from e
    return img


def pil_to_png_asset(img: Image.Image) -> ImageAsset:
    """Encode a Pillow image as a PNG `ImageAsset`."""
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return ImageAsset(data=buf.getvalue(), mime_type="image/png")


def split_spread(asset: ImageAsset) -> tuple[ImageAsset, ImageAsset]:
    """Split a two-page spread into its left and right halves.

    The left half is `width // 2` wide and the right half takes the remainder,
    so the two widths always sum to the source width. Both keep the source
    height.
    """
    img = image_bytes_to_pil(asset.data)
    width, height = img.size
    middle = width // 2
    left = img.crop((0, 0, middle, height))
    right = img.crop((middle, 0, width, height))
    return pil_to_png_asset(left), pil_to_png_asset(right)


def crop_face_region(asset: ImageAsset) -> ImageAsset:
    """Crop the upper-center third of an image, where the focal face usually sits."""
    img = image_bytes_to_pil(asset.data)
    width, height = img.size
    box = (width // 3, 0, (2 * width) // 3, max(1, height // 3))
    return pil_to_png_asset(img.crop(box))
