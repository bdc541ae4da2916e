import io
import logging
from pathlib import Path
from typing import Optional

import requests
from PIL import Image, UnidentifiedImageError

from infra.config import Config
from infra.errors import ImageUnavailableError, InvalidArgumentError, InvalidStateError
from infra.storage.schemas import AXIS_MAX, CropRegion, Page

logger = logging.getLogger(__name__)


def crop_box(size, crop: CropRegion):
    """Pixel box (left, top, right, bottom) for a 0-1000 normalized crop."""
    width, height = size
    left = round(crop.x_start / AXIS_MAX * width)
    right = round(crop.x_end / AXIS_MAX * width)
    top = round(crop.y_start / AXIS_MAX * height) if crop.y_start is not None else 0
    bottom = round(crop.y_end / AXIS_MAX * height) if crop.y_end is not None else height

    if right <= left or bottom <= top:
        raise InvalidArgumentError(f"Crop {crop.model_dump()} is empty for a {width}x{height} image")
    return left, top, right, bottom


class SourceImages:
    """
    Image transform service.

    Resolves page image references and renders crops for viewing or for the
    vision model. Stored references are never rewritten: a split page keeps
    its uncropped source plus a crop, so every crop is revertible.
    """

    def __init__(self, storage_root: Optional[Path] = None, timeout: int = 30):
        self.storage_root = Path(storage_root or Config.storage_root).expanduser()
        self.timeout = timeout

    def resolve_path(self, reference: str) -> Path:
        path = Path(reference).expanduser()
        if not path.is_absolute():
            path = self.storage_root / path
        return path

    def load(self, reference: str) -> Image.Image:
        if not reference:
            raise ImageUnavailableError("Empty image reference")

        try:
            if reference.startswith(("http://", "https://")):
                response = requests.get(reference, timeout=self.timeout)
                response.raise_for_status()
                image = Image.open(io.BytesIO(response.content))
            else:
                path = self.resolve_path(reference)
                if not path.exists():
                    raise ImageUnavailableError(f"Source image not found: {path}")
                image = Image.open(path)
            image.load()
        except requests.exceptions.RequestException as e:
            raise ImageUnavailableError(f"Failed to fetch image {reference}: {e}") from e
        except (UnidentifiedImageError, OSError) as e:
            raise ImageUnavailableError(f"Failed to decode image {reference}: {e}") from e

        logger.debug("Loaded image %s (%dx%d)", reference, image.width, image.height)
        return image

    def crop(self, image: Image.Image, crop: CropRegion) -> Image.Image:
        return image.crop(crop_box(image.size, crop))

    def render_page(
        self,
        page: Page,
        downsample: bool = True,
        apply_crop: bool = True,
        max_payload_kb: Optional[int] = None
    ) -> Image.Image:
        """Page image with its crop applied, sized for a vision call."""
        if not page.source_reference:
            raise InvalidStateError(f"Page {page.id} has no image")

        image = self.load(page.source_reference)
        if apply_crop and page.crop is not None:
            image = self.crop(image, page.crop)

        if downsample:
            image = self._downsample_for_vision(image, max_payload_kb or Config.vision_max_payload_kb)

        return image

    def render_thumbnail(self, page: Page, width: int = 300, quality: int = 70) -> bytes:
        image = self.render_page(page, downsample=False)

        if image.width > width:
            height = max(1, round(image.height * width / image.width))
            image = image.resize((width, height), Image.Resampling.LANCZOS)

        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        buffer = io.BytesIO()
        image.save(buffer, format='JPEG', quality=quality, progressive=True)
        return buffer.getvalue()

    def _downsample_for_vision(self, image: Image.Image, max_payload_kb: int) -> Image.Image:
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        buffer = io.BytesIO()
        image.save(buffer, format='JPEG', quality=75)
        jpeg_size_kb = buffer.tell() / 1024

        # base64 inflates the payload by about a third
        estimated_payload_kb = jpeg_size_kb * 1.33

        if estimated_payload_kb <= max_payload_kb:
            return image

        scale_factor = (max_payload_kb / estimated_payload_kb) ** 0.5

        width, height = image.size
        new_size = (max(1, int(width * scale_factor)), max(1, int(height * scale_factor)))

        return image.resize(new_size, Image.Resampling.LANCZOS)
