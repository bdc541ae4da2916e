"""
Shared fixtures for infra and pipeline tests.

All tests use real filesystem operations with temporary directories.
The only stand-in is FakeLLMClient, which scripts model responses and
records every call so prompts can be inspected.
"""

import pytest
from PIL import Image

from infra.images import SourceImages
from infra.storage import JsonRecordStore, Library
from pipeline.ledger import PageLedger

USAGE = {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}


class FakeLLMClient:
    """Scripted replacement for LLMClient.

    Each call pops the next scripted item: a string is returned as the
    response text, an exception instance is raised, and a callable is
    called with the messages and its return value used as the text.
    When the script is empty ``default`` is returned.
    """

    def __init__(self, responses=None, default="response text", cost=0.001):
        self.responses = list(responses or [])
        self.default = default
        self.cost = cost
        self.calls = []

    def queue(self, *items):
        self.responses.extend(items)

    def call(
        self,
        model,
        messages,
        temperature=0.0,
        max_tokens=None,
        timeout=120,
        response_format=None,
        images=None,
    ):
        self.calls.append({
            "model": model,
            "messages": messages,
            "timeout": timeout,
            "response_format": response_format,
            "images": images or [],
        })

        item = self.responses.pop(0) if self.responses else self.default
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item = item(messages)
        return item, dict(USAGE), self.cost

    @property
    def prompts(self):
        return [call["messages"][-1]["content"] for call in self.calls]


@pytest.fixture
def storage_root(tmp_path):
    root = tmp_path / "folio"
    root.mkdir()
    return root


@pytest.fixture
def store(storage_root):
    return JsonRecordStore(storage_root=storage_root)


@pytest.fixture
def ledger(store):
    return PageLedger(store)


@pytest.fixture
def images(storage_root):
    return SourceImages(storage_root=storage_root)


@pytest.fixture
def library(store, ledger):
    return Library(store, ledger)


@pytest.fixture
def book(library):
    return library.create_book("Test Book", author="Test Author")


@pytest.fixture
def fake_client():
    return FakeLLMClient()


@pytest.fixture
def make_image(tmp_path):
    """Factory writing a PNG; ``split`` paints the left half black."""
    scans = tmp_path / "scans"
    scans.mkdir()
    counter = {"n": 0}

    def _make(size=(200, 100), split=False, suffix=".png"):
        counter["n"] += 1
        img = Image.new('RGB', size, color='white')
        if split:
            img.paste((0, 0, 0), (0, 0, size[0] // 2, size[1]))
        path = scans / f"scan_{counter['n']:03d}{suffix}"
        img.save(path)
        return path

    return _make


@pytest.fixture
def add_pages(library, book, make_image):
    """Factory appending ``n`` image pages to the test book."""

    def _add(n, book_id=None, **image_kwargs):
        paths = [make_image(**image_kwargs) for _ in range(n)]
        return library.import_images(book_id or book.id, paths)

    return _add
