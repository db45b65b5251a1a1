# tests/test_image_processing.py
"""Tests for core/image_processing.py and core/image_cache.py."""

import io

import pytest
from PIL import Image

from core.exceptions import AssetFailure
from core.image_cache import ImagePreloadCache
from core.image_processing import crop_face_region, image_bytes_to_pil, split_spread
from models.narrative_models import ImageAsset
from tests.fakes.fake_generative_services import make_png


def _size(asset: ImageAsset) -> tuple[int, int]:
    return Image.open(io.BytesIO(asset.data)).size


class TestSplitSpread:
    @pytest.mark.parametrize("width, height", [(200, 150), (201, 150), (3, 7)])
    def test_halves_cover_full_width_at_full_height(self, width, height):
        left, right = split_spread(ImageAsset(data=make_png(width, height)))

        left_w, left_h = _size(left)
        right_w, right_h = _size(right)
        assert left_w == width // 2
        assert right_w == width - width // 2
        assert left_w + right_w == width
        assert left_h == right_h == height

    def test_halves_are_png(self):
        left, right = split_spread(ImageAsset(data=make_png(10, 10), mime_type="image/jpeg"))

        assert left.mime_type == right.mime_type == "image/png"

    def test_unreadable_bytes_raise_asset_failure(self):
        with pytest.raises(AssetFailure):
            split_spread(ImageAsset(data=b"not an image"))


class TestCropFaceRegion:
    def test_upper_center_third(self):
        crop = crop_face_region(ImageAsset(data=make_png(300, 600)))

        assert _size(crop) == (100, 200)

    def test_tiny_image_still_crops(self):
        crop = crop_face_region(ImageAsset(data=make_png(3, 2)))

        assert _size(crop) == (1, 1)

    def test_decode_error(self):
        with pytest.raises(AssetFailure):
            image_bytes_to_pil(b"")


@pytest.mark.asyncio
class TestImagePreloadCache:
    async def test_preload_decodes_new_images(self):
        cache = ImagePreloadCache(max_concurrent=2)

        await cache.preload_batch(
            {
                "page-1": ImageAsset(data=make_png(8, 8)),
                "page-2": ImageAsset(data=make_png(4, 4)),
                "page-3": None,
            }
        )

        assert len(cache) == 2
        assert "page-1" in cache
        assert cache.get("page-2").size == (4, 4)
        assert cache.get("page-3") is None

    async def test_bad_image_is_skipped(self):
        cache = ImagePreloadCache()

        await cache.preload_batch({"page-1": ImageAsset(data=b"garbage"), "page-2": ImageAsset(data=make_png())})

        assert "page-1" not in cache
        assert "page-2" in cache

    async def test_cached_entries_are_not_decoded_again(self):
        cache = ImagePreloadCache()
        await cache.preload_batch({"page-1": ImageAsset(data=make_png(8, 8))})
        first = cache.get("page-1")

        await cache.preload_batch({"page-1": ImageAsset(data=make_png(16, 16))})

        assert cache.get("page-1") is first

    async def test_clear(self):
        cache = ImagePreloadCache()
        await cache.preload_batch({"page-1": ImageAsset(data=make_png())})

        cache.clear()

        assert len(cache) == 0
