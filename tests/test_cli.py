"""
Tests for the folio command line.

Key behaviors to verify:
1. Subcommands parse into the right handlers
2. Book and page commands operate on the configured storage root
3. Folio errors exit with status 1 and a readable message
"""

import pytest
from PIL import Image

import cli.book.commands
import cli.pages.commands
from cli import create_parser, main
from cli.helpers import build_services, format_time, stage_marks
from infra.storage.schemas import OcrResult, TranslationResult


@pytest.fixture
def services(tmp_path, monkeypatch):
    root = tmp_path / "folio"

    def _build():
        return build_services(root)

    monkeypatch.setattr(cli.book.commands, "build_services", _build)
    monkeypatch.setattr(cli.pages.commands, "build_services", _build)
    return _build()


class TestParser:

    def test_process_defaults(self):
        args = create_parser().parse_args(["process", "b1"])

        assert args.action == "process-all"
        assert args.pages is None

    def test_split_ratio_is_float(self):
        args = create_parser().parse_args(["pages", "split", "p1", "--side", "right", "--ratio", "52.5"])

        assert args.ratio == 52.5
        assert args.side == "right"

    def test_export_defaults(self):
        args = create_parser().parse_args(["book", "export", "b1"])

        assert args.format == "translation"
        assert args.output is None

    def test_unknown_action_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["process", "b1", "--action", "illuminate"])


class TestCommands:

    def test_create_add_show(self, services, tmp_path, capsys):
        main(["book", "create", "Herbal", "--language", "Latin"])
        book = services.library.list_books()[0]

        scan = tmp_path / "scan.png"
        Image.new("RGB", (40, 20), "white").save(scan)
        main(["pages", "add", book.id, str(scan)])
        main(["book", "show", book.id])

        out = capsys.readouterr().out
        assert "Created book" in out
        assert "Added 1 page(s)" in out
        assert len(services.ledger.list_ordered(book.id)) == 1

    def test_manual_split_then_reset(self, services, tmp_path, capsys):
        book = services.library.create_book("Herbal")
        scan = tmp_path / "spread.png"
        Image.new("RGB", (80, 40), "white").save(scan)
        (page,) = services.library.import_images(book.id, [scan])

        main(["pages", "manual-split", page.id])
        assert len(services.ledger.list_ordered(book.id)) == 2

        main(["pages", "reset", book.id])
        assert len(services.ledger.list_ordered(book.id)) == 1

    def test_folio_error_exits(self, services, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["pages", "delete", "missing"])

        assert exc.value.code == 1
        assert "❌" in capsys.readouterr().out

    def test_delete_pattern_id_touches_nothing(self, services, capsys):
        book = services.library.create_book("Herbal")
        services.ledger.insert_pages(book.id, ["a.png"])

        with pytest.raises(SystemExit) as exc:
            main(["pages", "delete", "*"])

        assert exc.value.code == 1
        assert len(services.ledger.list_ordered(book.id)) == 1

    def test_export_to_file(self, services, tmp_path, capsys):
        book = services.library.create_book("Herbal")
        (page,) = services.ledger.insert_pages(book.id, ["a.png"])
        services.store.update_page(page.id, {
            "translation": TranslationResult(text="Of sage.", language="English", model="m"),
        })
        output = tmp_path / "out" / "herbal.txt"

        main(["book", "export", book.id, "--format", "translation", "-o", str(output)])

        text = output.read_text(encoding="utf-8")
        assert "[Page 1]" in text
        assert "Of sage." in text
        assert "Exported translation" in capsys.readouterr().out

    def test_export_to_stdout(self, services, capsys):
        book = services.library.create_book("Herbal")
        (page,) = services.ledger.insert_pages(book.id, ["a.png"])
        services.store.update_page(page.id, {
            "ocr": OcrResult(text="De salvia.", language="Latin", model="m"),
        })

        main(["book", "export", book.id, "--format", "ocr", "-o", "-"])

        out = capsys.readouterr().out
        assert "De salvia." in out
        assert "1 of 1 pages transcribed" in out


class TestHelpers:

    def test_format_time(self):
        assert format_time(12) == "12.0s"
        assert format_time(90) == "1.5m"
        assert format_time(7200) == "2.0h"

    def test_stage_marks(self, services):
        book = services.library.create_book("Herbal")
        (page,) = services.ledger.insert_pages(book.id, ["a.png"])

        assert stage_marks(page) == "···"
