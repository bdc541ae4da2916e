import threading
import uuid
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from infra.errors import InvalidArgumentError, NotFoundError
from infra.logger import PipelineLogger, null_logger
from infra.storage.record_store import RecordStore
from infra.storage.schemas import CropRegion, Page


def new_page_id() -> str:
    return uuid.uuid4().hex


class PageLedger:
    """
    Single writer of page ordering for every book.

    After any structural change (insert, delete, reorder, split) the pages of
    the book carry page numbers 1..N with no gaps or duplicates. Every pass
    validates its input before the first write, and renumbering only writes
    pages whose number actually changes, so an interrupted pass is safe to
    repeat with ``renumber``.
    """

    def __init__(self, store: RecordStore, logger: Optional[PipelineLogger] = None):
        self.store = store
        self.logger = logger or null_logger("ledger")
        self._lock = threading.RLock()

    # ----- reads -----

    def list_ordered(self, book_id: str) -> List[Page]:
        return self.store.list_pages(book_id)

    def get_page(self, page_id: str) -> Page:
        return self.store.get_page(page_id)

    def previous_page(self, page: Page) -> Optional[Page]:
        ordered = self.list_ordered(page.book_id)
        index = self._index_of(ordered, page.id)
        return ordered[index - 1] if index > 0 else None

    def next_page(self, page: Page) -> Optional[Page]:
        ordered = self.list_ordered(page.book_id)
        index = self._index_of(ordered, page.id)
        return ordered[index + 1] if index + 1 < len(ordered) else None

    def sort_ids(self, book_id: str, page_ids: Sequence[str]) -> List[str]:
        """Return ``page_ids`` in the book's canonical page order."""
        positions = {page.id: i for i, page in enumerate(self.list_ordered(book_id))}

        unknown = [page_id for page_id in page_ids if page_id not in positions]
        if unknown:
            raise NotFoundError(f"Pages not in book {book_id}: {', '.join(unknown)}")

        return sorted(page_ids, key=positions.__getitem__)

    # ----- structural writes -----

    def insert_pages(self, book_id: str, image_refs: Sequence[str]) -> List[Page]:
        """Append one page per image reference, numbered after the current last page."""
        refs = list(image_refs)
        for ref in refs:
            if not isinstance(ref, str) or not ref.strip():
                raise InvalidArgumentError(f"Invalid image reference: {ref!r}")

        with self._lock:
            book = self.store.get_book(book_id)
            existing = self.list_ordered(book_id)
            next_number = max((p.page_number for p in existing), default=0) + 1

            inserted = []
            for offset, ref in enumerate(refs):
                page = Page(
                    id=new_page_id(),
                    tenant_id=book.tenant_id,
                    book_id=book_id,
                    page_number=next_number + offset,
                    image_reference=ref,
                    original_image_reference=ref,
                )
                inserted.append(self.store.insert_page(page))

            self._set_pages_count(book_id, len(existing) + len(inserted))

        if inserted:
            self.logger.info(
                f"Inserted {len(inserted)} pages into {book_id}",
                action="insert",
                page_number=inserted[0].page_number,
            )
        return inserted

    def delete_page(self, page_id: str) -> None:
        with self._lock:
            page = self.get_page(page_id)
            self.store.delete_page(page_id)
            self.renumber(page.book_id)

        self.logger.info(
            f"Deleted page {page_id}",
            action="delete",
            page_id=page_id,
            page_number=page.page_number,
        )

    def reorder(self, book_id: str, page_ids: Sequence[str]) -> List[Page]:
        """
        Assign ``page_number = index + 1`` following ``page_ids``.

        ``page_ids`` must be exactly the book's current page ids, each once.
        Anything else means the caller's view of the book is stale, and the
        call is rejected without touching any page.
        """
        requested = list(page_ids)

        with self._lock:
            ordered = self.list_ordered(book_id)
            current_ids = {page.id for page in ordered}

            if len(requested) != len(set(requested)):
                raise InvalidArgumentError(f"Reorder for {book_id} contains duplicate page ids")

            missing = current_ids - set(requested)
            extra = set(requested) - current_ids
            if missing or extra:
                raise InvalidArgumentError(
                    f"Reorder for {book_id} must list every page exactly once "
                    f"(missing: {sorted(missing)}, unknown: {sorted(extra)})"
                )

            by_id = {page.id: page for page in ordered}
            self._write_order(book_id, [by_id[page_id] for page_id in requested])

        self.logger.info(f"Reordered {len(requested)} pages", action="reorder")
        return self.list_ordered(book_id)

    def renumber(self, book_id: str) -> List[Page]:
        """Reassign 1..N following the current page_number order."""
        with self._lock:
            ordered = self.list_ordered(book_id)
            self._write_order(book_id, ordered)
        return self.list_ordered(book_id)

    def insert_after(self, origin: Page, new_page: Page) -> Page:
        """
        Insert ``new_page`` directly after ``origin`` and renumber the book.

        The final order is computed in memory first; pages after the origin
        are shifted, then the new page is written with its final number. If
        that write fails the shifted pages are closed up again.
        """
        with self._lock:
            origin = self.get_page(origin.id)
            if new_page.book_id != origin.book_id:
                raise InvalidArgumentError(
                    f"Page {new_page.id} belongs to {new_page.book_id}, not {origin.book_id}"
                )

            ordered = self.list_ordered(origin.book_id)
            position = self._index_of(ordered, origin.id) + 1

            final_order = ordered[:position] + [None] + ordered[position:]
            self._write_order(origin.book_id, final_order)

            page = new_page.model_copy(update={"page_number": position + 1})
            try:
                inserted = self.store.insert_page(page)
            except Exception:
                self.renumber(origin.book_id)
                raise

        self.logger.info(
            f"Inserted page {inserted.id} after {origin.id}",
            action="insert_after",
            page_id=inserted.id,
            page_number=inserted.page_number,
        )
        return inserted

    def update_crop(self, page_id: str, crop: Union[CropRegion, Dict[str, Any], None]) -> Page:
        if isinstance(crop, dict):
            try:
                crop = CropRegion.model_validate(crop)
            except ValidationError as e:
                raise InvalidArgumentError(f"Invalid crop for page {page_id}: {e}") from e

        return self.store.update_page(page_id, {"crop": crop})

    def reset_splits(self, book_id: str) -> int:
        """Remove every split product and clear crops and detections on the rest."""
        with self._lock:
            ordered = self.list_ordered(book_id)
            removed = [page for page in ordered if page.split_from is not None]

            for page in removed:
                self.store.delete_page(page.id)

            for page in ordered:
                if page.split_from is None and (page.crop is not None or page.split_detection is not None):
                    self.store.update_page(page.id, {"crop": None, "split_detection": None})

            self.renumber(book_id)

        self.logger.info(f"Reset splits: removed {len(removed)} pages", action="reset_splits")
        return len(removed)

    # ----- helpers -----

    def _write_order(self, book_id: str, ordered: List[Optional[Page]]) -> None:
        # None entries are slots reserved for a page about to be inserted
        for number, page in enumerate(ordered, start=1):
            if page is not None and page.page_number != number:
                self.store.update_page(page.id, {"page_number": number})

        self._set_pages_count(book_id, len(ordered))

    def _set_pages_count(self, book_id: str, count: int) -> None:
        book = self.store.get_book(book_id)
        if book.pages_count != count:
            self.store.update_book(book_id, {"pages_count": count})

    @staticmethod
    def _index_of(ordered: List[Page], page_id: str) -> int:
        for index, page in enumerate(ordered):
            if page.id == page_id:
                return index
        raise NotFoundError(f"Page not found: {page_id}")
