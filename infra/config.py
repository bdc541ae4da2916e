import os
from pathlib import Path
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv

from infra.errors import ServiceError

load_dotenv()

DEFAULT_MODEL = "google/gemini-2.0-flash-001"


class FolioConfig(BaseModel):
    openrouter_api_key: str = Field(
        default="",
        description="OpenRouter API key (required for AI calls, not for ledger work)"
    )

    openrouter_site_url: str = Field(
        default="https://github.com/folio",
        description="Site URL sent to OpenRouter for attribution"
    )

    openrouter_site_name: str = Field(
        default="Folio",
        description="Site name sent to OpenRouter for attribution"
    )

    vision_model: str = Field(
        default=DEFAULT_MODEL,
        description="Model used for transcription and spread detection"
    )

    text_model: str = Field(
        default=DEFAULT_MODEL,
        description="Model used for translation and summarization"
    )

    storage_root: Path = Field(
        default=Path.home() / "Documents" / "folio",
        description="Root directory for books, pages and source images"
    )

    source_language: str = Field(default="Latin")
    target_language: str = Field(default="English")

    context_chars: int = Field(
        default=2000,
        description="Characters of previous-page output passed as context"
    )

    batch_pacing_seconds: float = Field(
        default=1.0,
        description="Delay between batch items to stay under vendor rate limits"
    )

    request_timeout: int = Field(default=120, ge=1)
    max_retries: int = Field(default=3, ge=1)

    max_image_mb: int = Field(default=20, ge=1)
    vision_max_payload_kb: int = Field(default=800, ge=50)

    @field_validator('storage_root')
    @classmethod
    def validate_storage_root(cls, v: Path) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator('context_chars')
    @classmethod
    def validate_context_chars(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("FOLIO_CONTEXT_CHARS must be positive")
        return v

    @field_validator('batch_pacing_seconds')
    @classmethod
    def validate_pacing(cls, v: float) -> float:
        if v < 0:
            raise ValueError("FOLIO_BATCH_PACING_SECONDS cannot be negative")
        return v

    def require_api_key(self) -> str:
        if not self.openrouter_api_key.strip():
            raise ServiceError(
                "OPENROUTER_API_KEY is required for AI calls. "
                "Get your key at: https://openrouter.ai/keys"
            )
        return self.openrouter_api_key.strip()

    model_config = {
        "frozen": True,
        "validate_assignment": True
    }


def _load_config() -> FolioConfig:
    return FolioConfig(
        openrouter_api_key=os.getenv('OPENROUTER_API_KEY', ''),
        openrouter_site_url=os.getenv('OPENROUTER_SITE_URL', 'https://github.com/folio'),
        openrouter_site_name=os.getenv('OPENROUTER_SITE_NAME', 'Folio'),
        vision_model=os.getenv('FOLIO_VISION_MODEL', DEFAULT_MODEL),
        text_model=os.getenv('FOLIO_TEXT_MODEL', DEFAULT_MODEL),
        storage_root=Path(os.getenv('FOLIO_STORAGE_ROOT', '~/Documents/folio')),
        source_language=os.getenv('FOLIO_SOURCE_LANGUAGE', 'Latin'),
        target_language=os.getenv('FOLIO_TARGET_LANGUAGE', 'English'),
        context_chars=int(os.getenv('FOLIO_CONTEXT_CHARS', '2000')),
        batch_pacing_seconds=float(os.getenv('FOLIO_BATCH_PACING_SECONDS', '1.0')),
        request_timeout=int(os.getenv('FOLIO_REQUEST_TIMEOUT', '120')),
        max_retries=int(os.getenv('FOLIO_MAX_RETRIES', '3')),
        max_image_mb=int(os.getenv('FOLIO_MAX_IMAGE_MB', '20')),
        vision_max_payload_kb=int(os.getenv('FOLIO_VISION_MAX_PAYLOAD_KB', '800')),
    )

Config = _load_config()
