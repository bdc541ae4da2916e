from infra.config import Config
from infra.errors import (
    FolioError,
    NotFoundError,
    InvalidArgumentError,
    InvalidStateError,
    ServiceError,
    ImageUnavailableError,
    DetectionFailedError,
)

from infra.storage import (
    Library,
    RecordStore,
    JsonRecordStore,
    MetricsManager,
)

from infra.llm import (
    LLMClient,
    PricingCache,
    CostCalculator,
)

from infra.images import SourceImages

from infra.logger import (
    PipelineLogger,
    create_logger,
)

__all__ = [
    "Config",

    "FolioError",
    "NotFoundError",
    "InvalidArgumentError",
    "InvalidStateError",
    "ServiceError",
    "ImageUnavailableError",
    "DetectionFailedError",

    "Library",
    "RecordStore",
    "JsonRecordStore",
    "MetricsManager",

    "LLMClient",
    "PricingCache",
    "CostCalculator",

    "SourceImages",

    "PipelineLogger",
    "create_logger",
]
