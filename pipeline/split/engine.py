import json
import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import requests
from pydantic import ValidationError

from infra.config import Config
from infra.errors import (
    DetectionFailedError,
    ImageUnavailableError,
    InvalidArgumentError,
    InvalidStateError,
)
from infra.images import SourceImages
from infra.llm.openrouter import MalformedResponseError
from infra.logger import PipelineLogger, null_logger
from infra.storage.record_store import RecordStore
from infra.storage.schemas import AXIS_MAX, BoundingBox, CropRegion, Page, SplitDetection
from pipeline.ledger import PageLedger, new_page_id

from .prompt import DETECTION_PROMPT, SPLIT_DETECTION_RESPONSE_FORMAT

SIDES = ("left", "right")


@dataclass
class SplitResult:
    kept_page: Page
    new_page: Page


@dataclass
class DetectionOutput:
    detection: SplitDetection
    model: str
    cost_usd: float = 0.0
    usage: Dict[str, Any] = field(default_factory=dict)
    time_seconds: float = 0.0


def parse_detection(response_text: str) -> SplitDetection:
    """Parse the vision model's JSON answer, tolerating markdown code fences."""
    text = (response_text or "").strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DetectionFailedError(f"Detection response is not JSON: {e}") from e

    try:
        return SplitDetection.model_validate(data)
    except ValidationError as e:
        raise DetectionFailedError(f"Detection response does not match schema: {e}") from e


def manual_detection() -> SplitDetection:
    half = AXIS_MAX // 2
    return SplitDetection(
        is_two_page_spread=True,
        confidence="manual",
        reasoning="Manually marked as a two-page spread",
        left_page=BoundingBox(xmin=0, xmax=half, ymin=0, ymax=AXIS_MAX),
        right_page=BoundingBox(xmin=half, xmax=AXIS_MAX, ymin=0, ymax=AXIS_MAX),
    )


class SplitEngine:
    """
    Detects two-page spreads and splits them into two ordered pages.

    Detection only caches its answer on the page; splitting is always an
    explicit call. A split keeps the page's uncropped image reference and
    gives the two resulting pages complementary crops over the full image
    width.
    """

    def __init__(
        self,
        store: RecordStore,
        ledger: PageLedger,
        images: SourceImages,
        client=None,
        model: Optional[str] = None,
        timeout: Optional[int] = None,
        logger: Optional[PipelineLogger] = None,
    ):
        self.store = store
        self.ledger = ledger
        self.images = images
        self.client = client
        self.model = model or Config.vision_model
        self.timeout = timeout or Config.request_timeout
        self.logger = logger or null_logger("split")

    def _load(self, page: Union[Page, str]) -> Page:
        page_id = page.id if isinstance(page, Page) else page
        return self.ledger.get_page(page_id)

    # ----- detection -----

    def detect_spread(self, page: Union[Page, str]) -> SplitDetection:
        return self.run_detection(page).detection

    def run_detection(self, page: Union[Page, str]) -> DetectionOutput:
        page = self._load(page)
        if not page.source_reference:
            raise InvalidStateError(f"Page {page.id} has no image")
        if self.client is None:
            raise InvalidStateError("Spread detection needs an LLM client")

        try:
            image = self.images.render_page(page, apply_crop=False)
        except ImageUnavailableError as e:
            raise DetectionFailedError(f"Image for page {page.id} is unavailable: {e}") from e

        start_time = time.time()
        try:
            response_text, usage, cost = self.client.call(
                self.model,
                [{"role": "user", "content": DETECTION_PROMPT}],
                temperature=0.0,
                timeout=self.timeout,
                response_format=SPLIT_DETECTION_RESPONSE_FORMAT,
                images=[image],
            )
        except (requests.exceptions.RequestException, MalformedResponseError) as e:
            raise DetectionFailedError(f"Detection call failed for page {page.id}: {e}") from e
        elapsed = time.time() - start_time

        detection = parse_detection(response_text)
        self.store.update_page(page.id, {"split_detection": detection})

        self.logger.info(
            f"Detected {'spread' if detection.is_two_page_spread else 'single page'} "
            f"({detection.confidence})",
            action="detect-split",
            page_id=page.id,
            page_number=page.page_number,
            cost_usd=cost,
            duration_seconds=elapsed,
        )

        return DetectionOutput(
            detection=detection,
            model=self.model,
            cost_usd=cost,
            usage=usage or {},
            time_seconds=elapsed,
        )

    # ----- splitting -----

    def apply_split(
        self,
        page: Union[Page, str],
        side: str = "left",
        split_ratio: float = 50,
        detection: Optional[SplitDetection] = None,
    ) -> SplitResult:
        """
        Split ``page`` at ``split_ratio`` percent of the full image width.

        The regions are always ``[0, boundary]`` and ``[boundary, 1000]`` on
        the normalized axis, whatever crop the page had before. The page
        keeps its id and the region named by ``side``; a new page with the
        other region is inserted directly after it. Calling this twice on the
        same page splits twice: each call creates a new page.
        """
        if side not in SIDES:
            raise InvalidArgumentError(f"Split side must be 'left' or 'right', got {side!r}")
        if isinstance(split_ratio, bool) or not isinstance(split_ratio, (int, float)):
            raise InvalidArgumentError(f"Split ratio must be a number, got {split_ratio!r}")
        if math.isnan(split_ratio) or not 0 < split_ratio < 100:
            raise InvalidArgumentError(f"Split ratio must be between 0 and 100, got {split_ratio}")

        page = self._load(page)
        if not page.source_reference:
            raise InvalidStateError(f"Page {page.id} has no image")

        detection = detection or page.split_detection
        if detection is not None and not detection.is_two_page_spread:
            raise InvalidStateError(f"Page {page.id} is not a two-page spread; refusing to split")

        left, right = self._partition(split_ratio, page.crop)
        kept_crop, new_crop = (left, right) if side == "left" else (right, left)

        new_page = Page(
            id=new_page_id(),
            tenant_id=page.tenant_id,
            book_id=page.book_id,
            page_number=page.page_number,
            image_reference=page.image_reference,
            original_image_reference=page.source_reference,
            crop=new_crop,
            split_from=page.id,
        )

        kept_fields = {
            "crop": kept_crop,
            "original_image_reference": page.source_reference,
        }
        if detection is not None:
            kept_fields["split_detection"] = detection

        kept = self.store.update_page(page.id, kept_fields)
        inserted = self.ledger.insert_after(kept, new_page)

        self.logger.info(
            f"Split page {page.id} at {split_ratio}% keeping {side}",
            action="split",
            page_id=page.id,
            page_number=page.page_number,
        )

        return SplitResult(
            kept_page=self.ledger.get_page(kept.id),
            new_page=self.ledger.get_page(inserted.id),
        )

    def manual_split(self, page: Union[Page, str], side: str = "left") -> SplitResult:
        page = self._load(page)
        if not page.source_reference:
            raise InvalidStateError(f"Page {page.id} has no image")
        if side not in SIDES:
            raise InvalidArgumentError(f"Split side must be 'left' or 'right', got {side!r}")

        return self.apply_split(page, side=side, split_ratio=50, detection=manual_detection())

    @staticmethod
    def _partition(split_ratio: float, crop: Optional[CropRegion] = None):
        y_start = crop.y_start if crop is not None else None
        y_end = crop.y_end if crop is not None else None

        boundary = AXIS_MAX * split_ratio / 100

        left = CropRegion(x_start=0, x_end=boundary, y_start=y_start, y_end=y_end)
        right = CropRegion(x_start=boundary, x_end=AXIS_MAX, y_start=y_start, y_end=y_end)
        return left, right
