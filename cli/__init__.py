import argparse
import sys

import cli.book
import cli.pages
from cli.process import setup_process_parser
from infra.errors import FolioError


def create_parser():
    parser = argparse.ArgumentParser(
        prog='folio',
        description='Folio - Transcribe and translate scanned manuscripts page by page',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Books
  folio book create "De Revolutionibus" --author Copernicus --language Latin
  folio book list
  folio book show <book-id>
  folio book delete <book-id> --yes

  # Pages
  folio pages add <book-id> ~/Scans/folio-*.jpg
  folio pages detect <page-id>
  folio pages split <page-id> --side left --ratio 52
  folio pages manual-split <page-id>
  folio pages reorder <book-id> <page-id> <page-id> ...
  folio pages delete <page-id>
  folio pages reset <book-id>

  # Transcription (Ctrl-C stops after the current page)
  folio process <book-id>
  folio process <book-id> --action transcribe --pages <id> <id>
  folio process <book-id> --action translate --target-language German
  folio process <book-id> --action detect-split
"""
    )

    subparsers = parser.add_subparsers(dest='command', help='Command namespace')
    subparsers.required = True

    cli.book.setup_parser(subparsers)
    cli.pages.setup_parser(subparsers)
    setup_process_parser(subparsers)

    return parser


def main(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        args.func(args)
    except FolioError as e:
        print(f"❌ {e}")
        sys.exit(1)
