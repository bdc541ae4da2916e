"""
Tests for infra/images.py

Key behaviors to verify:
1. References resolve relative to the storage root or as absolute paths
2. Normalized crops map to pixel boxes
3. Page rendering applies the crop without touching stored references
4. Missing or undecodable images raise ImageUnavailableError
5. Vision downsampling bounds the payload size
"""

import io

import pytest
from PIL import Image

from infra.errors import ImageUnavailableError, InvalidArgumentError, InvalidStateError
from infra.images import crop_box
from infra.storage.schemas import CropRegion, Page


def _page(reference, crop=None):
    return Page(id="p1", book_id="b1", page_number=1, image_reference=reference, crop=crop)


class TestCropBox:
    """0-1000 axis to pixels."""

    def test_left_half(self):
        assert crop_box((200, 100), CropRegion(x_start=0, x_end=500)) == (0, 0, 100, 100)

    def test_right_half_with_vertical_bounds(self):
        crop = CropRegion(x_start=500, x_end=1000, y_start=100, y_end=900)
        assert crop_box((200, 100), crop) == (100, 10, 200, 90)

    def test_degenerate_box_rejected(self):
        """A crop narrower than one pixel is empty for a tiny image."""
        with pytest.raises(InvalidArgumentError):
            crop_box((2, 2), CropRegion(x_start=0, x_end=100))


class TestLoad:
    """Reference resolution."""

    def test_relative_reference(self, images, storage_root):
        Image.new("RGB", (30, 20)).save(storage_root / "scan.png")

        img = images.load("scan.png")

        assert img.size == (30, 20)

    def test_absolute_reference(self, images, make_image):
        path = make_image(size=(40, 10))

        assert images.load(str(path)).size == (40, 10)

    def test_missing_file(self, images):
        with pytest.raises(ImageUnavailableError):
            images.load("missing.png")

    def test_not_an_image(self, images, storage_root):
        (storage_root / "notes.png").write_text("not an image")

        with pytest.raises(ImageUnavailableError):
            images.load("notes.png")

    def test_empty_reference(self, images):
        with pytest.raises(ImageUnavailableError):
            images.load("")


class TestRenderPage:
    """Non-destructive crop rendering."""

    def test_crop_applied(self, images, make_image):
        path = make_image(size=(200, 100), split=True)
        page = _page(str(path), crop=CropRegion(x_start=0, x_end=500))

        img = images.render_page(page, downsample=False)

        assert img.size == (100, 100)
        # left half of the spread is black
        assert img.convert("L").getpixel((50, 50)) < 10

    def test_right_crop(self, images, make_image):
        path = make_image(size=(200, 100), split=True)
        page = _page(str(path), crop=CropRegion(x_start=500, x_end=1000))

        img = images.render_page(page, downsample=False)

        assert img.convert("L").getpixel((50, 50)) > 245

    def test_apply_crop_false_returns_full_image(self, images, make_image):
        path = make_image(size=(200, 100))
        page = _page(str(path), crop=CropRegion(x_start=0, x_end=500))

        assert images.render_page(page, downsample=False, apply_crop=False).size == (200, 100)

    def test_prefers_original_reference(self, images, make_image):
        original = make_image(size=(200, 100))
        other = make_image(size=(10, 10))
        page = _page(str(other)).model_copy(update={"original_image_reference": str(original)})

        assert images.render_page(page, downsample=False).size == (200, 100)

    def test_page_without_image(self, images):
        with pytest.raises(InvalidStateError):
            images.render_page(_page(None))

    def test_downsample_bounds_payload(self, images, make_image):
        path = make_image(size=(1200, 1200))
        # noise defeats JPEG compression so the image is large
        noisy = Image.effect_noise((1200, 1200), 100).convert("RGB")
        noisy.save(path)

        img = images.render_page(_page(str(path)), max_payload_kb=50)

        assert img.size[0] < 1200


class TestThumbnail:

    def test_thumbnail_is_jpeg_at_width(self, images, make_image):
        path = make_image(size=(600, 300))

        data = images.render_thumbnail(_page(str(path)), width=300)

        thumb = Image.open(io.BytesIO(data))
        assert thumb.format == "JPEG"
        assert thumb.size == (300, 150)

    def test_no_enlargement(self, images, make_image):
        path = make_image(size=(100, 50))

        thumb = Image.open(io.BytesIO(images.render_thumbnail(_page(str(path)), width=300)))

        assert thumb.size == (100, 50)
