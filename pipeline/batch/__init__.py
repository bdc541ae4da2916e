from .orchestrator import (
    BatchOrchestrator,
    BatchState,
    CancellationToken,
    ItemState,
    ProgressEvent,
)
from .actions import (
    BatchAction,
    BatchContext,
    BatchReport,
    build_handler,
    run_batch,
)

__all__ = [
    "BatchOrchestrator",
    "BatchState",
    "CancellationToken",
    "ItemState",
    "ProgressEvent",
    "BatchAction",
    "BatchContext",
    "BatchReport",
    "build_handler",
    "run_batch",
]
