"""
Structured logging for ledger, split, transcription and batch work.

Each component of a book gets one append-only JSONL file:
  <storage_root>/books/<book_id>/logs/<component>.jsonl

Every entry carries timestamp, level, message, book_id and component, plus
any of the STRUCTURED_FIELDS passed as keyword arguments:

    with create_logger(book.id, "batch", log_dir=store.log_dir(book.id)) as logger:
        logger.info("Transcribed page", page_id=page.id, cost_usd=0.002)
        logger.progress("Batch", current=3, total=40)

Nothing touches the filesystem until the first message is logged.
"""

import json
import logging
import sys
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


STRUCTURED_FIELDS = (
    'book_id',
    'component',
    'page_id',
    'page_number',
    'action',
    'stage',
    'progress',
    'cost_usd',
    'tokens',
    'duration_seconds',
    'error',
)

_RESERVED = ('exc_info', 'stack_info', 'stacklevel')


class _AppendHandler(logging.FileHandler):
    def __init__(self, path: Path):
        super().__init__(path, mode='a', encoding='utf-8')

    def emit(self, record):
        super().emit(record)
        # tail -f friendly
        self.flush()


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now().astimezone().isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        entry.update({
            name: getattr(record, name)
            for name in STRUCTURED_FIELDS
            if hasattr(record, name)
        })
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Short human-readable line for terminal output."""

    ICONS = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️',
        'WARNING': '⚠️',
        'ERROR': '❌',
    }

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            datetime.now().strftime('%H:%M:%S'),
            self.ICONS.get(record.levelname, '•'),
            f"[{getattr(record, 'component', '-')}]",
        ]
        if getattr(record, 'page_number', None) is not None:
            parts.append(f"[page {record.page_number}]")
        parts.append(record.getMessage())
        if getattr(record, 'cost_usd', None):
            parts.append(f"(${record.cost_usd:.4f})")
        return ' '.join(parts)


class PipelineLogger:
    """One component's logger for one book.

    Handlers are attached on first use, so a logger that never logs leaves
    no empty file behind. Fields set with ``context_scope`` are added to
    every entry logged inside the scope.
    """

    def __init__(
        self,
        book_id: str,
        component: str,
        log_dir: Optional[Path] = None,
        console_output: bool = False,
        json_output: bool = True,
        level: str = "INFO",
        filename: Optional[str] = None
    ):
        self.book_id = book_id
        self.component = component
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self.console_output = console_output
        self.json_output = json_output and self.log_dir is not None
        self.level = getattr(logging, level.upper())
        self.filename = filename or f"{component}.jsonl"
        self.log_file: Optional[Path] = None

        self.context: Dict[str, Any] = {}
        self._context_lock = threading.Lock()
        self._logger: Optional[logging.Logger] = None

    @property
    def logger(self) -> logging.Logger:
        if self._logger is None:
            self._logger = self._build()
        return self._logger

    def _build(self) -> logging.Logger:
        # unique name per instance so handlers never accumulate across runs
        built = logging.getLogger(f"folio.{self.book_id}.{self.component}.{id(self)}")
        built.setLevel(self.level)
        built.propagate = False

        if self.console_output:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(ConsoleFormatter())
            built.addHandler(console)

        if self.json_output:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self.log_file = self.log_dir / self.filename
            handler = _AppendHandler(self.log_file)
            handler.setFormatter(JSONFormatter())
            built.addHandler(handler)

        if not built.handlers:
            built.addHandler(logging.NullHandler())

        return built

    def _log(self, level: int, message: str, **fields):
        options = {name: fields.pop(name) for name in _RESERVED if name in fields}

        with self._context_lock:
            extra = {'book_id': self.book_id, 'component': self.component, **self.context}
        extra.update(fields)

        self.logger.log(level, message, extra=extra, **options)

    def debug(self, message: str, **fields):
        self._log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields):
        self._log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields):
        self._log(logging.WARNING, message, **fields)

    def error(self, message: str, **fields):
        self._log(logging.ERROR, message, **fields)

    def progress(self, message: str, current: int, total: int, **fields):
        percent = min(100.0, current / total * 100) if total > 0 else 0.0
        self._log(
            logging.INFO,
            message,
            progress={'current': current, 'total': total, 'percent': percent},
            **fields
        )

    def page_error(self, message: str, page_id: str, error: BaseException, **fields):
        self._log(logging.ERROR, message, page_id=page_id, error=type(error).__name__, **fields)

    @contextmanager
    def context_scope(self, **context):
        """Add ``context`` to every entry logged inside the ``with`` block."""
        with self._context_lock:
            saved = dict(self.context)
            self.context.update(context)
        try:
            yield self
        finally:
            with self._context_lock:
                self.context = saved

    def close(self):
        if self._logger is None:
            return
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def create_logger(book_id: str, component: str, **kwargs) -> PipelineLogger:
    return PipelineLogger(book_id, component, **kwargs)


def null_logger(component: str) -> PipelineLogger:
    """Logger that writes nowhere; the default when a caller supplies none."""
    return PipelineLogger("-", component, log_dir=None, json_output=False)
