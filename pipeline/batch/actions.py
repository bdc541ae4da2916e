import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from infra.config import Config
from infra.errors import InvalidArgumentError
from infra.images import SourceImages
from infra.logger import create_logger, null_logger
from infra.storage.metrics import MetricsManager
from infra.storage.record_store import RecordStore
from infra.storage.schemas import (
    Book,
    OcrResult,
    Page,
    PromptOverrides,
    SummaryResult,
    TranslationResult,
)
from pipeline.ledger import PageLedger
from pipeline.split import SplitEngine
from pipeline.transcription import (
    ChainedTranscriptionPipeline,
    PreviousPageContext,
    StageOutput,
)

from .orchestrator import BatchOrchestrator, BatchState, CancellationToken, ProgressEvent


class BatchAction(str, Enum):
    TRANSCRIBE = "transcribe"
    TRANSLATE = "translate"
    SUMMARIZE = "summarize"
    DETECT_SPLIT = "detect-split"
    PROCESS_ALL = "process-all"


@dataclass
class BatchContext:
    store: RecordStore
    ledger: PageLedger
    pipeline: Optional[ChainedTranscriptionPipeline] = None
    split_engine: Optional[SplitEngine] = None
    images: Optional[SourceImages] = None
    target_language: str = field(default_factory=lambda: Config.target_language)
    prompt_overrides: PromptOverrides = field(default_factory=PromptOverrides)
    metrics: Optional[MetricsManager] = None


@dataclass
class BatchReport:
    book_id: str
    action: BatchAction
    state: BatchState
    total_count: int
    completed_ids: List[str]
    failed_ids: List[str]
    errors: Dict[str, str]
    not_attempted_ids: List[str]
    elapsed_seconds: float = 0.0


def _record(metrics: Optional[MetricsManager], output: StageOutput, page: Page) -> None:
    if metrics is None:
        return

    metrics.record(
        key=f"{output.stage}_{page.id}",
        cost_usd=output.cost_usd,
        time_seconds=output.time_seconds,
        tokens=output.usage.get("total_tokens"),
        custom_metrics={
            "page_id": page.id,
            "page_number": page.page_number,
            "model": output.model,
            "prompt_tokens": output.usage.get("prompt_tokens", 0),
            "completion_tokens": output.usage.get("completion_tokens", 0),
        },
    )


def _stage_fields(output: StageOutput, source_language: str, target_language: str) -> Dict:
    if output.stage == "ocr":
        return {"ocr": OcrResult(text=output.text, language=source_language, model=output.model)}
    if output.stage == "translation":
        return {"translation": TranslationResult(text=output.text, language=target_language, model=output.model)}
    return {"summary": SummaryResult(text=output.text, model=output.model)}


def _require(action: BatchAction, **collaborators) -> None:
    missing = [name for name, value in collaborators.items() if value is None]
    if missing:
        raise InvalidArgumentError(f"Action '{action.value}' needs: {', '.join(missing)}")


def build_handler(
    action: BatchAction,
    context: BatchContext,
    book_id: Optional[str] = None,
) -> Callable[[str], None]:
    """
    Build the per-page handler for ``action``.

    The page and its canonical previous page are read from the ledger when
    the handler runs, so a page sees results written earlier in the same
    batch. Stage results are written as soon as a stage succeeds.
    """
    action = BatchAction(action)
    ledger = context.ledger
    store = context.store
    overrides = context.prompt_overrides
    target_language = context.target_language

    if action == BatchAction.DETECT_SPLIT:
        _require(action, split_engine=context.split_engine)
    else:
        _require(action, pipeline=context.pipeline)
    if action in (BatchAction.TRANSCRIBE, BatchAction.PROCESS_ALL):
        _require(action, images=context.images)

    def _load(page_id: str):
        page = ledger.get_page(page_id)
        if book_id is not None and page.book_id != book_id:
            raise InvalidArgumentError(f"Page {page_id} does not belong to book {book_id}")
        book: Book = store.get_book(page.book_id)
        return page, book

    def _save(page: Page, output: StageOutput, book: Book) -> None:
        store.update_page(page.id, _stage_fields(output, book.language, target_language))
        _record(context.metrics, output, page)

    def transcribe(page_id: str) -> None:
        page, book = _load(page_id)
        previous = PreviousPageContext.from_page(ledger.previous_page(page))
        image = context.images.render_page(page)
        output = context.pipeline.transcribe(image, book.language, previous.ocr, overrides.for_stage("ocr"))
        _save(page, output, book)

    def translate(page_id: str) -> None:
        page, book = _load(page_id)
        previous = PreviousPageContext.from_page(ledger.previous_page(page))
        output = context.pipeline.translate(
            page.ocr.text if page.ocr else "",
            book.language,
            target_language,
            previous.translation,
            overrides.for_stage("translation"),
        )
        _save(page, output, book)

    def summarize(page_id: str) -> None:
        page, book = _load(page_id)
        previous = PreviousPageContext.from_page(ledger.previous_page(page))
        output = context.pipeline.summarize(
            page.translation.text if page.translation else "",
            previous.summary,
            overrides.for_stage("summary"),
            target_language=target_language,
        )
        _save(page, output, book)

    def process_all(page_id: str) -> None:
        page, book = _load(page_id)
        previous = PreviousPageContext.from_page(ledger.previous_page(page))
        image = context.images.render_page(page)
        result = context.pipeline.process_all(image, book.language, target_language, previous, overrides)

        for output in (result.ocr, result.translation, result.summary):
            if output is not None:
                _save(page, output, book)

        if not result.succeeded:
            raise result.error

    def detect_split(page_id: str) -> None:
        page, _ = _load(page_id)
        detection = context.split_engine.run_detection(page)
        if context.metrics is not None:
            context.metrics.record(
                key=f"detect-split_{page.id}",
                cost_usd=detection.cost_usd,
                time_seconds=detection.time_seconds,
                tokens=detection.usage.get("total_tokens"),
                custom_metrics={
                    "page_id": page.id,
                    "page_number": page.page_number,
                    "model": detection.model,
                    "is_two_page_spread": detection.detection.is_two_page_spread,
                },
            )

    return {
        BatchAction.TRANSCRIBE: transcribe,
        BatchAction.TRANSLATE: translate,
        BatchAction.SUMMARIZE: summarize,
        BatchAction.PROCESS_ALL: process_all,
        BatchAction.DETECT_SPLIT: detect_split,
    }[action]


def run_batch(
    book_id: str,
    page_ids: Optional[Sequence[str]],
    action: BatchAction,
    context: BatchContext,
    token: Optional[CancellationToken] = None,
    on_progress: Optional[Callable[[ProgressEvent], None]] = None,
    pacing_seconds: Optional[float] = None,
    log_dir: Optional[Path] = None,
) -> BatchReport:
    """
    Run ``action`` over ``page_ids`` of one book and return the outcome.

    ``page_ids=None`` means every page of the book in canonical order.
    Otherwise ids are processed in the order given; ``PageLedger.sort_ids``
    puts a selection into book order when continuity matters.
    """
    action = BatchAction(action)
    context.store.get_book(book_id)

    if page_ids is None:
        page_ids = [page.id for page in context.ledger.list_ordered(book_id)]

    handler = build_handler(action, context, book_id=book_id)
    logger = (
        create_logger(book_id, "batch", log_dir=log_dir)
        if log_dir is not None
        else null_logger("batch")
    )

    start_time = time.time()
    with logger, logger.context_scope(action=action.value):
        logger.info(f"Running {action.value} on {len(page_ids)} pages")

        orchestrator = BatchOrchestrator(handler, pacing_seconds=pacing_seconds, logger=logger)
        for event in orchestrator.run(page_ids, token):
            if on_progress is not None:
                on_progress(event)

    return BatchReport(
        book_id=book_id,
        action=action,
        state=orchestrator.state,
        total_count=len(page_ids),
        completed_ids=list(orchestrator.completed_ids),
        failed_ids=list(orchestrator.failed_ids),
        errors=dict(orchestrator.errors),
        not_attempted_ids=orchestrator.not_attempted_ids,
        elapsed_seconds=time.time() - start_time,
    )
