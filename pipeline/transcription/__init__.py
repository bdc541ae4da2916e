from .chain import (
    ChainedTranscriptionPipeline,
    PreviousPageContext,
    ProcessResult,
    StageOutput,
    STAGES,
    fill_placeholders,
    truncate_context,
)
from .notes import parse_notes, extract_page_number
from .prompts import DEFAULT_PROMPTS

__all__ = [
    "ChainedTranscriptionPipeline",
    "PreviousPageContext",
    "ProcessResult",
    "StageOutput",
    "STAGES",
    "fill_placeholders",
    "truncate_context",
    "parse_notes",
    "extract_page_number",
    "DEFAULT_PROMPTS",
]
