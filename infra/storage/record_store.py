"""Persistent record store contract for books and pages."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from infra.errors import InvalidStateError, NotFoundError
from infra.storage.schemas import Book, Page

# Fields that identify a page or its uncropped image; they never change after insert.
IMMUTABLE_PAGE_FIELDS = frozenset({"id", "book_id", "image_reference", "created_at"})


class RecordStore(ABC):
    """
    CRUD over Book and Page records.

    Implementations must raise NotFoundError for missing records and must
    keep each single-record write atomic. Multi-record passes (renumbering)
    are a loop of single writes and are safe to retry.
    """

    @abstractmethod
    def find_book(self, book_id: str) -> Optional[Book]:
        ...

    @abstractmethod
    def list_books(self) -> List[Book]:
        ...

    @abstractmethod
    def insert_book(self, book: Book) -> Book:
        ...

    @abstractmethod
    def update_book(self, book_id: str, fields: Dict[str, Any]) -> Book:
        ...

    @abstractmethod
    def delete_book(self, book_id: str) -> None:
        ...

    @abstractmethod
    def find_page(self, page_id: str) -> Optional[Page]:
        ...

    @abstractmethod
    def list_pages(self, book_id: str) -> List[Page]:
        """Pages of a book ordered by page_number ascending (ties by id)."""

    @abstractmethod
    def insert_page(self, page: Page) -> Page:
        ...

    @abstractmethod
    def update_page(self, page_id: str, fields: Dict[str, Any]) -> Page:
        ...

    @abstractmethod
    def delete_page(self, page_id: str) -> None:
        ...

    def get_book(self, book_id: str) -> Book:
        book = self.find_book(book_id)
        if book is None:
            raise NotFoundError(f"Book not found: {book_id}")
        return book

    def get_page(self, page_id: str) -> Page:
        page = self.find_page(page_id)
        if page is None:
            raise NotFoundError(f"Page not found: {page_id}")
        return page


def check_page_update(current: Page, fields: Dict[str, Any]) -> None:
    """Reject updates that would break page identity or split lineage."""
    for name in IMMUTABLE_PAGE_FIELDS & fields.keys():
        if fields[name] != getattr(current, name):
            raise InvalidStateError(f"Page field '{name}' is immutable (page {current.id})")

    if "split_from" in fields:
        new_parent = fields["split_from"]
        if new_parent == current.id:
            raise InvalidStateError(f"Page {current.id} cannot be split from itself")
        if current.split_from is not None and new_parent != current.split_from:
            raise InvalidStateError(
                f"split_from of page {current.id} is already set to {current.split_from}"
            )


def check_page_insert(page: Page) -> None:
    if page.split_from is not None and page.split_from == page.id:
        raise InvalidStateError(f"Page {page.id} cannot be split from itself")
