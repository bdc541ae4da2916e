import json
import re
import shutil
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from infra.config import Config
from infra.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from infra.storage.metrics import MetricsManager
from infra.storage.record_store import RecordStore, check_page_insert, check_page_update
from infra.storage.schemas import Book, Page, utcnow

T = TypeVar("T", bound=BaseModel)

# ids become path segments and glob patterns
PLAIN_ID = re.compile(r"[0-9A-Za-z_-]+")


def _is_plain(record_id: Any) -> bool:
    return isinstance(record_id, str) and PLAIN_ID.fullmatch(record_id) is not None


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


class JsonRecordStore(RecordStore):
    """
    Filesystem record store.

    Layout:
        <storage_root>/books/<book_id>/book.json
        <storage_root>/books/<book_id>/pages/<page_id>.json
        <storage_root>/books/<book_id>/source/      ingested images
        <storage_root>/books/<book_id>/logs/        component logs
        <storage_root>/books/<book_id>/metrics.json

    Every record write goes to a temp file and is moved into place, so a
    reader never sees a half-written record.
    """

    def __init__(self, storage_root: Optional[Path] = None):
        self.storage_root = Path(storage_root or Config.storage_root).expanduser()
        self.books_dir = self.storage_root / "books"
        self.books_dir.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._page_index: Dict[str, str] = {}
        self._metrics: Dict[str, MetricsManager] = {}

    # ----- paths -----

    def book_dir(self, book_id: str) -> Path:
        if not _is_plain(book_id):
            raise NotFoundError(f"Book not found: {book_id}")
        return self.books_dir / book_id

    def source_dir(self, book_id: str) -> Path:
        return self.book_dir(book_id) / "source"

    def log_dir(self, book_id: str) -> Path:
        return self.book_dir(book_id) / "logs"

    def _book_file(self, book_id: str) -> Path:
        return self.book_dir(book_id) / "book.json"

    def _pages_dir(self, book_id: str) -> Path:
        return self.book_dir(book_id) / "pages"

    def _page_file(self, book_id: str, page_id: str) -> Path:
        if not _is_plain(page_id):
            raise NotFoundError(f"Page not found: {page_id}")
        return self._pages_dir(book_id) / f"{page_id}.json"

    def metrics(self, book_id: str) -> MetricsManager:
        with self._lock:
            if book_id not in self._metrics:
                self._metrics[book_id] = MetricsManager(self.book_dir(book_id) / "metrics.json")
            return self._metrics[book_id]

    # ----- file helpers -----

    def _write_json(self, path: Path, data: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = path.with_suffix('.json.tmp')

        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            temp_file.replace(path)
        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise

    def _read_model(self, path: Path, schema: Type[T]) -> Optional[T]:
        if not path.exists():
            return None

        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return schema.model_validate(data)

    def _validated(self, schema: Type[T], data: Dict[str, Any]) -> T:
        try:
            return schema.model_validate(data)
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid {schema.__name__} fields: {e}") from e

    # ----- books -----

    def find_book(self, book_id: str) -> Optional[Book]:
        if not _is_plain(book_id):
            return None
        return self._read_model(self._book_file(book_id), Book)

    def list_books(self) -> List[Book]:
        books = []
        for item in sorted(self.books_dir.iterdir()):
            if not item.is_dir() or item.name.startswith('.'):
                continue
            book = self.find_book(item.name)
            if book is not None:
                books.append(book)
        return sorted(books, key=lambda b: b.created_at, reverse=True)

    def insert_book(self, book: Book) -> Book:
        if not _is_plain(book.id):
            raise InvalidArgumentError(f"Book id must be letters, digits, '_' or '-': {book.id!r}")
        with self._lock:
            if self._book_file(book.id).exists():
                raise InvalidArgumentError(f"Book already exists: {book.id}")
            self._pages_dir(book.id).mkdir(parents=True, exist_ok=True)
            self._write_json(self._book_file(book.id), book.model_dump(mode="json"))
            return book

    def update_book(self, book_id: str, fields: Dict[str, Any]) -> Book:
        with self._lock:
            current = self.get_book(book_id)
            if "id" in fields and fields["id"] != book_id:
                raise InvalidStateError(f"Book id is immutable ({book_id})")

            data = current.model_dump(mode="json")
            data.update({k: _dump(v) for k, v in fields.items()})
            data["updated_at"] = utcnow().isoformat()

            book = self._validated(Book, data)
            self._write_json(self._book_file(book_id), book.model_dump(mode="json"))
            return book

    def delete_book(self, book_id: str) -> None:
        with self._lock:
            self.get_book(book_id)
            shutil.rmtree(self.book_dir(book_id))
            self._metrics.pop(book_id, None)
            self._page_index = {
                page_id: owner
                for page_id, owner in self._page_index.items()
                if owner != book_id
            }

    # ----- pages -----

    def _locate_page(self, page_id: str) -> Optional[Path]:
        if not _is_plain(page_id):
            return None
        book_id = self._page_index.get(page_id)
        if book_id is not None:
            path = self._page_file(book_id, page_id)
            if path.exists():
                return path
            del self._page_index[page_id]

        for path in self.books_dir.glob(f"*/pages/{page_id}.json"):
            self._page_index[page_id] = path.parent.parent.name
            return path
        return None

    def find_page(self, page_id: str) -> Optional[Page]:
        with self._lock:
            path = self._locate_page(page_id)
            if path is None:
                return None
            return self._read_model(path, Page)

    def list_pages(self, book_id: str) -> List[Page]:
        with self._lock:
            self.get_book(book_id)

            pages = []
            for path in self._pages_dir(book_id).glob("*.json"):
                page = self._read_model(path, Page)
                self._page_index[page.id] = book_id
                pages.append(page)

        return sorted(pages, key=lambda p: (p.page_number, p.id))

    def insert_page(self, page: Page) -> Page:
        with self._lock:
            self.get_book(page.book_id)
            check_page_insert(page)
            if not _is_plain(page.id):
                raise InvalidArgumentError(f"Page id must be letters, digits, '_' or '-': {page.id!r}")
            if self._locate_page(page.id) is not None:
                raise InvalidArgumentError(f"Page already exists: {page.id}")

            self._write_json(self._page_file(page.book_id, page.id), page.model_dump(mode="json"))
            self._page_index[page.id] = page.book_id
            return page

    def update_page(self, page_id: str, fields: Dict[str, Any]) -> Page:
        with self._lock:
            current = self.get_page(page_id)
            check_page_update(current, fields)

            data = current.model_dump(mode="json")
            data.update({k: _dump(v) for k, v in fields.items()})
            data["updated_at"] = utcnow().isoformat()

            page = self._validated(Page, data)
            self._write_json(self._page_file(page.book_id, page.id), page.model_dump(mode="json"))
            return page

    def delete_page(self, page_id: str) -> None:
        with self._lock:
            path = self._locate_page(page_id)
            if path is None:
                raise NotFoundError(f"Page not found: {page_id}")
            path.unlink()
            self._page_index.pop(page_id, None)
