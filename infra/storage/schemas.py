from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Normalized image axis used for crops and detection boxes.
AXIS_MAX = 1000

BookStatus = Literal["draft", "in_progress", "complete", "published"]
StageName = Literal["ocr", "translation", "summary"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CropRegion(BaseModel):
    """Horizontal (optionally vertical) sub-rectangle on the 0-1000 axis."""
    x_start: float = Field(..., ge=0, le=AXIS_MAX)
    x_end: float = Field(..., ge=0, le=AXIS_MAX)
    y_start: Optional[float] = Field(None, ge=0, le=AXIS_MAX)
    y_end: Optional[float] = Field(None, ge=0, le=AXIS_MAX)

    @model_validator(mode="after")
    def check_bounds(self) -> "CropRegion":
        if self.x_start >= self.x_end:
            raise ValueError(f"x_start ({self.x_start}) must be < x_end ({self.x_end})")
        if (self.y_start is None) != (self.y_end is None):
            raise ValueError("y_start and y_end must be set together")
        if self.y_start is not None and self.y_start >= self.y_end:
            raise ValueError(f"y_start ({self.y_start}) must be < y_end ({self.y_end})")
        return self

    @property
    def width(self) -> float:
        return self.x_end - self.x_start


class BoundingBox(BaseModel):
    xmin: float = Field(0, ge=0, le=AXIS_MAX)
    xmax: float = Field(0, ge=0, le=AXIS_MAX)
    ymin: float = Field(0, ge=0, le=AXIS_MAX)
    ymax: float = Field(0, ge=0, le=AXIS_MAX)

    @property
    def is_empty(self) -> bool:
        return self.xmax <= self.xmin or self.ymax <= self.ymin


class SplitDetection(BaseModel):
    """Result of spread detection, from the vision model or synthesized manually."""
    model_config = ConfigDict(populate_by_name=True)

    is_two_page_spread: bool = Field(..., alias="isTwoPageSpread")
    confidence: str = Field(..., description="Model-reported confidence, or 'manual'")
    reasoning: str = Field(default="")
    left_page: BoundingBox = Field(default_factory=BoundingBox, alias="leftPage")
    right_page: BoundingBox = Field(default_factory=BoundingBox, alias="rightPage")
    detected_at: datetime = Field(default_factory=utcnow)

    @property
    def is_manual(self) -> bool:
        return self.confidence == "manual"


class OcrResult(BaseModel):
    text: str
    language: str
    model: str
    updated_at: datetime = Field(default_factory=utcnow)


class TranslationResult(BaseModel):
    text: str
    language: str
    model: str
    updated_at: datetime = Field(default_factory=utcnow)


class SummaryResult(BaseModel):
    text: str
    model: str
    updated_at: datetime = Field(default_factory=utcnow)


class Book(BaseModel):
    id: str
    tenant_id: str = "default"
    title: str = Field(..., min_length=1)
    display_title: Optional[str] = None
    author: str = "Unknown"
    language: str = Field("Latin", description="Source language of the manuscript")
    published: str = "Unknown"
    status: BookStatus = "draft"
    thumbnail: Optional[str] = None
    pages_count: int = Field(0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Page(BaseModel):
    id: str
    tenant_id: str = "default"
    book_id: str
    page_number: int = Field(..., ge=1)
    image_reference: Optional[str] = None
    original_image_reference: Optional[str] = None
    crop: Optional[CropRegion] = None
    split_from: Optional[str] = None
    ocr: Optional[OcrResult] = None
    translation: Optional[TranslationResult] = None
    summary: Optional[SummaryResult] = None
    split_detection: Optional[SplitDetection] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def source_reference(self) -> Optional[str]:
        """Uncropped image this page is rendered from."""
        return self.original_image_reference or self.image_reference


class PromptOverrides(BaseModel):
    """Caller-supplied prompt templates; None means use the default."""
    ocr: Optional[str] = None
    translation: Optional[str] = None
    summary: Optional[str] = None

    def for_stage(self, stage: StageName) -> Optional[str]:
        value = getattr(self, stage)
        return value if value and value.strip() else None
