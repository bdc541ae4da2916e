"""
Plain-text export of a book's pages in ledger order.

The document has a metadata header, a count of translated and transcribed
pages, then one ``[Page N]`` block per page that has content in the
requested format. Pages with nothing to show are left out.
"""

import re
from datetime import date
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from infra.errors import InvalidArgumentError
from infra.logger import PipelineLogger, null_logger
from infra.storage.schemas import Book, Page
from pipeline.ledger import PageLedger

HEAVY_RULE = "═" * 60
LIGHT_RULE = "─" * 60


class ExportFormat(str, Enum):
    TRANSLATION = "translation"
    OCR = "ocr"
    BOTH = "both"


def _format(value: Union[ExportFormat, str]) -> ExportFormat:
    try:
        return ExportFormat(value)
    except ValueError as e:
        choices = ", ".join(f.value for f in ExportFormat)
        raise InvalidArgumentError(f"Export format must be one of {choices}, got {value!r}") from e


def _text(result) -> Optional[str]:
    if result is None or not result.text.strip():
        return None
    return result.text


def export_filename(book: Book, fmt: Union[ExportFormat, str]) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (book.display_title or book.title).lower()).strip("-")[:50]
    return f"{slug or book.id}-{_format(fmt).value}.txt"


def render_text(
    book: Book,
    pages: List[Page],
    fmt: Union[ExportFormat, str] = ExportFormat.TRANSLATION,
    exported_on: Optional[date] = None,
) -> str:
    fmt = _format(fmt)
    want_translation = fmt in (ExportFormat.TRANSLATION, ExportFormat.BOTH)
    want_ocr = fmt in (ExportFormat.OCR, ExportFormat.BOTH)

    lines = [HEAVY_RULE, (book.display_title or book.title).upper(), HEAVY_RULE, ""]

    lines.append(f"Title: {book.display_title or book.title}")
    if book.display_title and book.display_title != book.title:
        lines.append(f"Original Title: {book.title}")
    lines.append(f"Author: {book.author}")
    lines.append(f"Original Language: {book.language}")
    if book.published:
        lines.append(f"Published: {book.published}")
    lines.append(f"Exported: {(exported_on or date.today()).isoformat()}")
    lines.extend(["", LIGHT_RULE, ""])

    translated = sum(1 for page in pages if _text(page.translation))
    transcribed = sum(1 for page in pages if _text(page.ocr))
    lines.append(f"CONTENTS: {translated} of {len(pages)} pages translated")
    if want_ocr:
        lines.append(f"          {transcribed} of {len(pages)} pages transcribed")
    lines.extend(["", LIGHT_RULE])

    for page in pages:
        translation = _text(page.translation) if want_translation else None
        ocr = _text(page.ocr) if want_ocr else None
        if translation is None and ocr is None:
            continue

        lines.extend(["", f"[Page {page.page_number}]", ""])
        if translation is not None:
            if fmt is ExportFormat.BOTH:
                lines.extend(["--- TRANSLATION ---", ""])
            lines.extend([translation, ""])
        if ocr is not None:
            if fmt is ExportFormat.BOTH:
                lines.extend([f"--- ORIGINAL ({book.language}) ---", ""])
            lines.extend([ocr, ""])
        lines.append(LIGHT_RULE)

    lines.extend(["", HEAVY_RULE, "END OF DOCUMENT", HEAVY_RULE])
    return "\n".join(lines) + "\n"


class BookExporter:

    def __init__(self, ledger: PageLedger, logger: Optional[PipelineLogger] = None):
        self.ledger = ledger
        self.logger = logger or null_logger("export")

    def render(self, book_id: str, fmt: Union[ExportFormat, str] = ExportFormat.TRANSLATION) -> str:
        fmt = _format(fmt)
        book = self.ledger.store.get_book(book_id)
        pages = self.ledger.list_ordered(book_id)
        return render_text(book, pages, fmt)

    def write(
        self,
        book_id: str,
        fmt: Union[ExportFormat, str] = ExportFormat.TRANSLATION,
        output: Optional[Path] = None,
    ) -> Path:
        """Write the export to ``output`` (default: ``<slug>-<format>.txt`` in the cwd)."""
        fmt = _format(fmt)
        content = self.render(book_id, fmt)

        path = Path(output) if output is not None else Path(export_filename(self.ledger.store.get_book(book_id), fmt))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

        self.logger.info(f"Exported {fmt.value} text to {path}", action="export")
        return path
