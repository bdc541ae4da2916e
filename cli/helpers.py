from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from infra.config import Config
from infra.errors import InvalidArgumentError
from infra.images import SourceImages
from infra.llm import LLMClient
from infra.logger import create_logger
from infra.storage import JsonRecordStore, Library
from pipeline.ledger import PageLedger
from pipeline.split import SplitEngine
from pipeline.transcription import ChainedTranscriptionPipeline


@dataclass
class Services:
    store: JsonRecordStore
    ledger: PageLedger
    library: Library
    images: SourceImages
    _client: Optional[LLMClient] = field(default=None, repr=False)

    @property
    def client(self) -> LLMClient:
        if self._client is None:
            self._client = LLMClient()
        return self._client

    def book_logger(self, book_id: str, component: str):
        return create_logger(book_id, component, log_dir=self.store.log_dir(book_id))

    def split_engine(self, book_id: str) -> SplitEngine:
        return SplitEngine(
            self.store,
            self.ledger,
            self.images,
            client=self.client,
            logger=self.book_logger(book_id, "split"),
        )

    def pipeline(self, book_id: str) -> ChainedTranscriptionPipeline:
        return ChainedTranscriptionPipeline(
            self.client,
            logger=self.book_logger(book_id, "transcription"),
        )


def build_services(storage_root: Optional[Path] = None) -> Services:
    root = Path(storage_root or Config.storage_root)
    store = JsonRecordStore(storage_root=root)
    ledger = PageLedger(store)
    return Services(
        store=store,
        ledger=ledger,
        library=Library(store, ledger),
        images=SourceImages(storage_root=root),
    )


def read_prompt_file(path: Optional[str]) -> Optional[str]:
    if not path:
        return None

    prompt_path = Path(path).expanduser()
    if not prompt_path.is_file():
        raise InvalidArgumentError(f"Prompt file not found: {prompt_path}")
    return prompt_path.read_text(encoding='utf-8')


def format_time(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    else:
        return f"{seconds / 3600:.1f}h"


def stage_marks(page) -> str:
    return "".join(
        "✓" if getattr(page, stage) is not None else "·"
        for stage in ("ocr", "translation", "summary")
    )
