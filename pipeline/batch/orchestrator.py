import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from infra.config import Config
from infra.errors import InvalidArgumentError, InvalidStateError
from infra.logger import PipelineLogger, null_logger


class BatchState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"


class ItemState(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"


class CancellationToken:
    """Cooperative stop request shared between a batch run and its caller."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns early (True) once cancelled."""
        return self._event.wait(seconds)


@dataclass
class ProgressEvent:
    current_index: int
    total_count: int
    current_page_id: Optional[str]
    completed_ids: List[str]
    failed_ids: List[str]
    state: BatchState
    errors: Dict[str, str] = field(default_factory=dict)


class BatchOrchestrator:
    """
    Runs one page handler over an ordered list of page ids, one at a time.

    The handler is called with a page id; returning normally marks the item
    done, raising marks it failed and the run moves on. Cancellation is
    checked before each item, so an item already in flight always finishes.
    Ids are processed in exactly the order given.
    """

    def __init__(
        self,
        handler: Callable[[str], Any],
        pacing_seconds: Optional[float] = None,
        logger: Optional[PipelineLogger] = None,
    ):
        self.handler = handler
        self.pacing_seconds = Config.batch_pacing_seconds if pacing_seconds is None else pacing_seconds
        self.logger = logger or null_logger("batch")

        if self.pacing_seconds < 0:
            raise InvalidArgumentError("pacing_seconds cannot be negative")

        self._lock = threading.Lock()
        self.state = BatchState.IDLE
        self.item_states: Dict[str, ItemState] = {}
        self.completed_ids: List[str] = []
        self.failed_ids: List[str] = []
        self.errors: Dict[str, str] = {}

    @property
    def not_attempted_ids(self) -> List[str]:
        return [page_id for page_id, state in self.item_states.items() if state == ItemState.PENDING]

    def run(self, page_ids: Sequence[str], token: Optional[CancellationToken] = None) -> Iterator[ProgressEvent]:
        """
        Start a run and return an iterator of progress events.

        One event is yielded after every finished item, then a closing event
        with ``current_page_id=None`` carrying the terminal state (COMPLETED
        or STOPPED).
        """
        ids = list(page_ids)
        if len(ids) != len(set(ids)):
            raise InvalidArgumentError("Batch page ids must be unique")

        with self._lock:
            if self.state == BatchState.RUNNING:
                raise InvalidStateError("Batch is already running")
            self.state = BatchState.RUNNING
            self.item_states = {page_id: ItemState.PENDING for page_id in ids}
            self.completed_ids = []
            self.failed_ids = []
            self.errors = {}

        return self._iterate(ids, token or CancellationToken())

    def _event(self, index: int, total: int, page_id: Optional[str]) -> ProgressEvent:
        return ProgressEvent(
            current_index=index,
            total_count=total,
            current_page_id=page_id,
            completed_ids=list(self.completed_ids),
            failed_ids=list(self.failed_ids),
            state=self.state,
            errors=dict(self.errors),
        )

    def _iterate(self, ids: List[str], token: CancellationToken) -> Iterator[ProgressEvent]:
        total = len(ids)
        attempted = 0
        self.logger.info(f"Batch started: {total} pages", progress={"current": 0, "total": total})

        try:
            for index, page_id in enumerate(ids):
                if token.cancelled:
                    break

                attempted = index + 1
                self.item_states[page_id] = ItemState.IN_FLIGHT

                try:
                    self.handler(page_id)
                except Exception as e:
                    self.item_states[page_id] = ItemState.FAILED
                    self.failed_ids.append(page_id)
                    self.errors[page_id] = str(e) or type(e).__name__
                    self.logger.page_error(f"Page {page_id} failed: {e}", page_id, e)
                else:
                    self.item_states[page_id] = ItemState.DONE
                    self.completed_ids.append(page_id)

                self.logger.progress(f"Processed {attempted}/{total}", attempted, total, page_id=page_id)
                yield self._event(attempted, total, page_id)

                if attempted < total and self.pacing_seconds > 0 and not token.cancelled:
                    token.wait(self.pacing_seconds)

            if attempted < total:
                self.state = BatchState.STOPPED
                self.logger.warning(
                    f"Batch stopped after {attempted}/{total} pages "
                    f"({len(self.completed_ids)} done, {len(self.failed_ids)} failed)"
                )
            else:
                self.state = BatchState.COMPLETED
                self.logger.info(
                    f"Batch complete: {len(self.completed_ids)} done, {len(self.failed_ids)} failed"
                )
            yield self._event(attempted, total, None)
        finally:
            # closed early by the consumer
            if self.state == BatchState.RUNNING:
                self.state = BatchState.STOPPED
