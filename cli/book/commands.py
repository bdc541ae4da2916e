import sys

from rich.console import Console
from rich.table import Table

from cli.helpers import build_services, format_time, stage_marks
from pipeline.export import BookExporter
from pipeline.transcription import extract_page_number, parse_notes

console = Console()


def cmd_create(args):
    services = build_services()
    book = services.library.create_book(
        title=args.title,
        author=args.author,
        language=args.language,
        published=args.published,
        display_title=args.display_title,
    )
    print(f"✅ Created book: {book.id}")
    print(f"   Title:    {book.title}")
    print(f"   Language: {book.language}")


def cmd_list(args):
    services = build_services()
    books = services.library.list_books()

    if not books:
        print("No books yet. Use 'folio book create <title>' to add one.")
        return

    table = Table(title=f"Library ({len(books)} books)")
    table.add_column("Book ID", style="cyan")
    table.add_column("Title")
    table.add_column("Author")
    table.add_column("Language")
    table.add_column("Status", style="yellow")
    table.add_column("Pages", justify="right")

    for book in books:
        table.add_row(
            book.id,
            (book.display_title or book.title)[:40],
            book.author,
            book.language,
            book.status,
            str(book.pages_count),
        )

    console.print(table)


def cmd_show(args):
    services = build_services()
    book = services.library.get_book(args.book_id)
    pages = services.ledger.list_ordered(book.id)
    metrics = services.store.metrics(book.id)

    print(f"\n📖 {book.display_title or book.title}")
    print(f"   Author:   {book.author}")
    print(f"   Language: {book.language}")
    print(f"   Status:   {book.status}")
    print(f"   Pages:    {len(pages)}")
    print(f"   Cost:     ${metrics.get_total_cost():.4f} ({format_time(metrics.get_total_time())})")

    if not pages:
        return

    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Page ID", style="cyan")
    table.add_column("O/T/S")
    table.add_column("Crop")
    table.add_column("Split from", style="dim")
    table.add_column("Spread?")
    table.add_column("Printed #", justify="right")
    table.add_column("Notes", justify="right")

    for page in pages:
        crop = f"{page.crop.x_start:g}-{page.crop.x_end:g}" if page.crop else ""
        spread = ""
        if page.split_detection is not None:
            spread = "yes" if page.split_detection.is_two_page_spread else "no"
            spread += f" ({page.split_detection.confidence})"

        printed = extract_page_number(page.ocr.text) if page.ocr else None
        _, notes = parse_notes(page.translation.text) if page.translation else ("", [])

        table.add_row(
            str(page.page_number),
            page.id,
            stage_marks(page),
            crop,
            page.split_from or "",
            spread,
            str(printed) if printed is not None else "",
            str(len(notes)) if notes else "",
        )

    console.print(table)


def cmd_status(args):
    services = build_services()
    book = services.library.update_status(args.book_id, args.status)
    print(f"✅ {book.id}: status {book.status}")


def cmd_delete(args):
    services = build_services()
    book = services.library.get_book(args.book_id)

    if not args.yes:
        print(f"\n⚠️  WARNING: This will DELETE all pages and files for:")
        print(f"   Book ID: {book.id}")
        print(f"   Title:   {book.title}")
        print(f"   Pages:   {len(services.ledger.list_ordered(book.id))}")

        try:
            response = input("\nAre you sure? (yes/no): ").strip().lower()
            if response not in ['yes', 'y']:
                print("Cancelled.")
                sys.exit(0)
        except EOFError:
            print("\n❌ Cancelled (no input)")
            sys.exit(0)

    services.library.delete_book(book.id)
    print(f"✅ Deleted: {book.id}")


def cmd_export(args):
    services = build_services()
    exporter = BookExporter(services.ledger, logger=services.book_logger(args.book_id, "export"))

    if args.output == '-':
        sys.stdout.write(exporter.render(args.book_id, args.format))
        return

    path = exporter.write(args.book_id, args.format, output=args.output)
    print(f"✅ Exported {args.format} to {path}")
