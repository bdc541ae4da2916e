#!/usr/bin/env python3
"""
Folio CLI - Transcribe and translate scanned manuscripts

Commands:
  Books:
    folio book create <title>         Create an empty book
    folio book list                   List all books
    folio book show <book-id>         Show a book and its pages
    folio book delete <book-id>       Delete a book

  Pages:
    folio pages add <book-id> <images...>      Append images as pages
    folio pages delete <page-id>               Delete a page (renumbers)
    folio pages reorder <book-id> <ids...>     Set the full page order
    folio pages detect <page-id>               Detect a two-page spread
    folio pages split <page-id>                Split a spread
    folio pages manual-split <page-id>         Split 50/50 without detection
    folio pages reset <book-id>                Undo all splits

  Processing:
    folio process <book-id> --action <a>       transcribe | translate | summarize
                                               | detect-split | process-all
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from cli import main


if __name__ == '__main__':
    main()
