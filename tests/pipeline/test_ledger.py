"""
Tests for pipeline/ledger/ledger.py

Key behaviors to verify:
1. Appended pages are numbered after the current last page
2. Deletes renumber the remaining pages to 1..N without touching other fields
3. Reorder rejects stale or duplicate id lists before any write
4. insert_after places a page directly after its origin
5. reset_splits removes split products and clears crops
6. Contiguous numbering holds across random sequences of operations
"""

import random

import pytest

from infra.errors import InvalidArgumentError, NotFoundError
from infra.storage.schemas import CropRegion, Page
from pipeline.ledger import new_page_id


def _numbers(ledger, book_id):
    return [p.page_number for p in ledger.list_ordered(book_id)]


def _ids(ledger, book_id):
    return [p.id for p in ledger.list_ordered(book_id)]


def _child(origin, split_from=None):
    return Page(
        id=new_page_id(),
        book_id=origin.book_id,
        page_number=1,
        image_reference=origin.image_reference,
        original_image_reference=origin.original_image_reference,
        split_from=split_from or origin.id,
    )


class TestInsertPages:

    def test_numbering_continues(self, ledger, book):
        first = ledger.insert_pages(book.id, ["a.png", "b.png"])
        second = ledger.insert_pages(book.id, ["c.png"])

        assert [p.page_number for p in first + second] == [1, 2, 3]
        assert [p.image_reference for p in ledger.list_ordered(book.id)] == ["a.png", "b.png", "c.png"]

    def test_pages_count_updated(self, ledger, store, book):
        ledger.insert_pages(book.id, ["a.png", "b.png"])

        assert store.get_book(book.id).pages_count == 2

    def test_blank_reference_rejected(self, ledger, book):
        with pytest.raises(InvalidArgumentError):
            ledger.insert_pages(book.id, ["a.png", "  "])

        assert ledger.list_ordered(book.id) == []

    def test_unknown_book(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.insert_pages("nope", ["a.png"])


class TestDeletePage:

    def test_middle_delete_renumbers(self, ledger, store, book):
        pages = ledger.insert_pages(book.id, [f"{i}.png" for i in range(1, 6)])
        ledger.update_crop(pages[3].id, CropRegion(x_start=0, x_end=500))

        ledger.delete_page(pages[2].id)

        remaining = ledger.list_ordered(book.id)
        assert [p.page_number for p in remaining] == [1, 2, 3, 4]
        assert [p.image_reference for p in remaining] == ["1.png", "2.png", "4.png", "5.png"]
        # other fields survive the shift
        assert remaining[2].crop.x_end == 500
        assert store.get_book(book.id).pages_count == 4

    def test_delete_missing(self, ledger, book):
        with pytest.raises(NotFoundError):
            ledger.delete_page("nope")

    def test_pattern_id_deletes_nothing(self, ledger, library, book):
        """A glob-like id is not a page, in this book or any other."""
        ledger.insert_pages(book.id, ["a.png"])
        other = library.create_book("Other")
        ledger.insert_pages(other.id, ["b.png"])

        with pytest.raises(NotFoundError):
            ledger.get_page("*")
        with pytest.raises(NotFoundError):
            ledger.delete_page("*")

        assert len(ledger.list_ordered(book.id)) == 1
        assert len(ledger.list_ordered(other.id)) == 1


class TestReorder:

    def test_reorder(self, ledger, book):
        a, b, c = ledger.insert_pages(book.id, ["a.png", "b.png", "c.png"])

        ledger.reorder(book.id, [c.id, a.id, b.id])

        assert _ids(ledger, book.id) == [c.id, a.id, b.id]
        assert _numbers(ledger, book.id) == [1, 2, 3]

    def test_missing_id_rejected_without_change(self, ledger, book):
        a, b, c = ledger.insert_pages(book.id, ["a.png", "b.png", "c.png"])

        with pytest.raises(InvalidArgumentError):
            ledger.reorder(book.id, [c.id, a.id])

        assert _ids(ledger, book.id) == [a.id, b.id, c.id]

    def test_duplicate_rejected(self, ledger, book):
        a, b, c = ledger.insert_pages(book.id, ["a.png", "b.png", "c.png"])

        with pytest.raises(InvalidArgumentError):
            ledger.reorder(book.id, [c.id, a.id, b.id, a.id])

        assert _ids(ledger, book.id) == [a.id, b.id, c.id]

    def test_unknown_id_rejected(self, ledger, book):
        a, b = ledger.insert_pages(book.id, ["a.png", "b.png"])

        with pytest.raises(InvalidArgumentError):
            ledger.reorder(book.id, [b.id, "stranger"])


class TestNeighbours:

    def test_previous_and_next(self, ledger, book):
        a, b, c = ledger.insert_pages(book.id, ["a.png", "b.png", "c.png"])

        assert ledger.previous_page(a) is None
        assert ledger.previous_page(b).id == a.id
        assert ledger.next_page(b).id == c.id
        assert ledger.next_page(c) is None

    def test_sort_ids(self, ledger, book):
        a, b, c = ledger.insert_pages(book.id, ["a.png", "b.png", "c.png"])

        assert ledger.sort_ids(book.id, [c.id, a.id]) == [a.id, c.id]

    def test_sort_ids_unknown(self, ledger, book):
        ledger.insert_pages(book.id, ["a.png"])

        with pytest.raises(NotFoundError):
            ledger.sort_ids(book.id, ["nope"])


class TestInsertAfter:

    def test_inserted_directly_after_origin(self, ledger, book):
        a, b, c = ledger.insert_pages(book.id, ["a.png", "b.png", "c.png"])

        child = ledger.insert_after(b, _child(b))

        assert _ids(ledger, book.id) == [a.id, b.id, child.id, c.id]
        assert _numbers(ledger, book.id) == [1, 2, 3, 4]
        assert child.page_number == 3

    def test_after_last_page(self, ledger, book):
        a, b = ledger.insert_pages(book.id, ["a.png", "b.png"])

        child = ledger.insert_after(b, _child(b))

        assert _ids(ledger, book.id) == [a.id, b.id, child.id]

    def test_other_book_rejected(self, ledger, library, book):
        (a,) = ledger.insert_pages(book.id, ["a.png"])
        other = library.create_book("Other")
        stranger = _child(a).model_copy(update={"book_id": other.id})

        with pytest.raises(InvalidArgumentError):
            ledger.insert_after(a, stranger)

    def test_failed_insert_leaves_no_gap(self, ledger, store, book):
        a, b, c = ledger.insert_pages(book.id, ["a.png", "b.png", "c.png"])
        duplicate = _child(a).model_copy(update={"id": c.id})

        with pytest.raises(InvalidArgumentError):
            ledger.insert_after(a, duplicate)

        assert _ids(ledger, book.id) == [a.id, b.id, c.id]
        assert _numbers(ledger, book.id) == [1, 2, 3]
        assert store.get_book(book.id).pages_count == 3


class TestUpdateCrop:

    def test_dict_crop_validated(self, ledger, book):
        (a,) = ledger.insert_pages(book.id, ["a.png"])

        page = ledger.update_crop(a.id, {"x_start": 100, "x_end": 900})

        assert page.crop.width == 800

    def test_invalid_crop(self, ledger, book):
        (a,) = ledger.insert_pages(book.id, ["a.png"])

        with pytest.raises(InvalidArgumentError):
            ledger.update_crop(a.id, {"x_start": 900, "x_end": 100})


class TestResetSplits:

    def test_removes_split_products(self, ledger, book):
        a, b = ledger.insert_pages(book.id, ["a.png", "b.png"])
        ledger.update_crop(a.id, CropRegion(x_start=0, x_end=500))
        ledger.insert_after(a, _child(a))

        removed = ledger.reset_splits(book.id)

        assert removed == 1
        pages = ledger.list_ordered(book.id)
        assert [p.id for p in pages] == [a.id, b.id]
        assert [p.page_number for p in pages] == [1, 2]
        assert pages[0].crop is None

    def test_nothing_to_reset(self, ledger, book):
        ledger.insert_pages(book.id, ["a.png"])

        assert ledger.reset_splits(book.id) == 0


class TestContiguousNumbering:
    """Random operation sequences always leave numbers 1..N."""

    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_random_operations(self, ledger, store, book, seed):
        rng = random.Random(seed)
        ledger.insert_pages(book.id, [f"{i}.png" for i in range(4)])

        for step in range(30):
            pages = ledger.list_ordered(book.id)
            op = rng.choice(["insert", "delete", "split", "reorder"])

            if op == "insert" or not pages:
                ledger.insert_pages(book.id, [f"new{step}.png"])
            elif op == "delete":
                ledger.delete_page(rng.choice(pages).id)
            elif op == "split":
                origin = rng.choice(pages)
                ledger.insert_after(origin, _child(origin))
            else:
                ids = [p.id for p in pages]
                rng.shuffle(ids)
                ledger.reorder(book.id, ids)

            numbers = _numbers(ledger, book.id)
            assert numbers == list(range(1, len(numbers) + 1))
            assert store.get_book(book.id).pages_count == len(numbers)
