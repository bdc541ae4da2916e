import glob
import os
import sys
from pathlib import Path

from rich.console import Console

from cli.helpers import build_services

console = Console()


def cmd_add(args):
    paths = []
    for pattern in args.image_patterns:
        matches = sorted(glob.glob(os.path.expanduser(pattern)))
        if not matches:
            print(f"⚠️  No files match pattern: {pattern}")
        paths.extend(Path(p) for p in matches)

    if not paths:
        print("❌ No image files found")
        sys.exit(1)

    services = build_services()
    pages = services.library.import_images(args.book_id, paths)

    print(f"✅ Added {len(pages)} page(s) to {args.book_id}")
    skipped = len(paths) - len(pages)
    if skipped:
        print(f"   ⚠️  {skipped} file(s) skipped (not an image or too large)")


def cmd_delete(args):
    services = build_services()
    page = services.ledger.get_page(args.page_id)
    services.ledger.delete_page(page.id)
    print(f"✅ Deleted page {page.page_number} ({page.id}); book renumbered")


def cmd_reorder(args):
    services = build_services()
    pages = services.ledger.reorder(args.book_id, args.page_ids)
    print(f"✅ Reordered {len(pages)} pages")


def cmd_split(args):
    services = build_services()
    engine = services.split_engine(services.ledger.get_page(args.page_id).book_id)
    result = engine.apply_split(args.page_id, side=args.side, split_ratio=args.ratio)
    _print_split(result)


def cmd_manual_split(args):
    services = build_services()
    engine = services.split_engine(services.ledger.get_page(args.page_id).book_id)
    result = engine.manual_split(args.page_id, side=args.side)
    _print_split(result)


def _print_split(result):
    kept, new = result.kept_page, result.new_page
    print(f"✅ Split page {kept.id}")
    print(f"   Kept: #{kept.page_number} crop {kept.crop.x_start:g}-{kept.crop.x_end:g}")
    print(f"   New:  #{new.page_number} crop {new.crop.x_start:g}-{new.crop.x_end:g} ({new.id})")


def cmd_detect(args):
    services = build_services()
    engine = services.split_engine(services.ledger.get_page(args.page_id).book_id)
    detection = engine.detect_spread(args.page_id)

    verdict = "[green]two-page spread[/green]" if detection.is_two_page_spread else "single page"
    console.print(f"{args.page_id}: {verdict} (confidence: {detection.confidence})")
    if detection.reasoning:
        console.print(f"   [dim]{detection.reasoning}[/dim]")
    if detection.is_two_page_spread:
        left, right = detection.left_page, detection.right_page
        console.print(f"   Left:  x {left.xmin:g}-{left.xmax:g}")
        console.print(f"   Right: x {right.xmin:g}-{right.xmax:g}")
        console.print(f"   Run 'folio pages split {args.page_id}' to apply.")


def cmd_reset(args):
    services = build_services()
    removed = services.ledger.reset_splits(args.book_id)
    print(f"✅ Removed {removed} split page(s); crops and detections cleared")
