"""Book collection and image ingestion on top of a RecordStore and the page ledger"""

import logging
import shutil
import uuid
from pathlib import Path
from typing import List, Optional, Sequence

from infra.config import Config
from infra.errors import InvalidArgumentError
from infra.storage.json_store import JsonRecordStore
from infra.storage.schemas import Book, BookStatus, Page

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = frozenset({'.jpg', '.jpeg', '.png', '.webp', '.tif', '.tiff'})


class Library:

    def __init__(self, store: JsonRecordStore, ledger, max_image_mb: Optional[int] = None):
        self.store = store
        self.ledger = ledger
        self.max_image_bytes = (max_image_mb or Config.max_image_mb) * 1024 * 1024

    def create_book(
        self,
        title: str,
        author: str = "Unknown",
        language: str = "Latin",
        published: str = "Unknown",
        display_title: Optional[str] = None,
        tenant_id: str = "default",
    ) -> Book:
        if not title or not title.strip():
            raise InvalidArgumentError("Book title is required")

        book = Book(
            id=uuid.uuid4().hex,
            tenant_id=tenant_id,
            title=title.strip(),
            display_title=display_title,
            author=author or "Unknown",
            language=language or "Latin",
            published=published or "Unknown",
            status="draft",
        )
        return self.store.insert_book(book)

    def get_book(self, book_id: str) -> Book:
        return self.store.get_book(book_id)

    def list_books(self) -> List[Book]:
        books = []
        for book in self.store.list_books():
            count = len(self.store.list_pages(book.id))
            books.append(book.model_copy(update={"pages_count": count}))
        return books

    def update_status(self, book_id: str, status: BookStatus) -> Book:
        return self.store.update_book(book_id, {"status": status})

    def delete_book(self, book_id: str) -> None:
        for page in self.store.list_pages(book_id):
            self.store.delete_page(page.id)
        self.store.delete_book(book_id)

    def import_images(self, book_id: str, paths: Sequence[Path]) -> List[Page]:
        """
        Copy image files into the book's source directory and append them as pages.

        Files that are not images, are missing, or exceed the size limit are
        skipped. Pages are appended in the order given.
        """
        self.store.get_book(book_id)
        source_dir = self.store.source_dir(book_id)
        source_dir.mkdir(parents=True, exist_ok=True)

        refs = []
        for path in (Path(p).expanduser() for p in paths):
            if path.suffix.lower() not in IMAGE_SUFFIXES:
                logger.warning("Skipping %s: not an image file", path)
                continue
            if not path.is_file():
                logger.warning("Skipping %s: file not found", path)
                continue
            if path.stat().st_size > self.max_image_bytes:
                logger.warning(
                    "Skipping %s: larger than %d MB", path, self.max_image_bytes // (1024 * 1024)
                )
                continue

            dest = source_dir / f"{uuid.uuid4().hex}{path.suffix.lower()}"
            shutil.copy2(path, dest)
            refs.append(str(dest.relative_to(self.store.storage_root)))

        if not refs:
            raise InvalidArgumentError(f"No importable images for book {book_id}")

        pages = self.ledger.insert_pages(book_id, refs)

        book = self.store.get_book(book_id)
        if book.thumbnail is None:
            first = self.ledger.list_ordered(book_id)[0]
            self.store.update_book(book_id, {"thumbnail": first.image_reference})

        logger.info("Imported %d images into book %s", len(pages), book_id)
        return pages
