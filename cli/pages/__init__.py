from cli.pages.commands import (
    cmd_add,
    cmd_delete,
    cmd_reorder,
    cmd_split,
    cmd_manual_split,
    cmd_detect,
    cmd_reset,
)


def setup_parser(subparsers):
    """Setup pages command parser."""
    pages_parser = subparsers.add_parser('pages', help='Page ordering and splitting commands')
    pages_subparsers = pages_parser.add_subparsers(dest='pages_command', help='Pages command')
    pages_subparsers.required = True

    add_parser = pages_subparsers.add_parser('add', help='Append image file(s) as pages')
    add_parser.add_argument('book_id', help='Book ID')
    add_parser.add_argument('image_patterns', nargs='+', help='Image file pattern(s), added in order')
    add_parser.set_defaults(func=cmd_add)

    delete_parser = pages_subparsers.add_parser('delete', help='Delete a page and renumber the book')
    delete_parser.add_argument('page_id', help='Page ID')
    delete_parser.set_defaults(func=cmd_delete)

    reorder_parser = pages_subparsers.add_parser('reorder', help='Set the page order (every page id, once)')
    reorder_parser.add_argument('book_id', help='Book ID')
    reorder_parser.add_argument('page_ids', nargs='+', help='All page ids in the new order')
    reorder_parser.set_defaults(func=cmd_reorder)

    split_parser = pages_subparsers.add_parser('split', help='Split a two-page spread into two pages')
    split_parser.add_argument('page_id', help='Page ID')
    split_parser.add_argument('--side', choices=['left', 'right'], default='left', help='Crop the page keeps')
    split_parser.add_argument('--ratio', type=float, default=50, help='Split position in percent (default: 50)')
    split_parser.set_defaults(func=cmd_split)

    manual_parser = pages_subparsers.add_parser('manual-split', help='Mark a page as a spread and split it 50/50')
    manual_parser.add_argument('page_id', help='Page ID')
    manual_parser.add_argument('--side', choices=['left', 'right'], default='left', help='Crop the page keeps')
    manual_parser.set_defaults(func=cmd_manual_split)

    detect_parser = pages_subparsers.add_parser('detect', help='Ask the vision model whether a page is a spread')
    detect_parser.add_argument('page_id', help='Page ID')
    detect_parser.set_defaults(func=cmd_detect)

    reset_parser = pages_subparsers.add_parser('reset', help='Undo all splits of a book')
    reset_parser.add_argument('book_id', help='Book ID')
    reset_parser.set_defaults(func=cmd_reset)


__all__ = [
    'cmd_add', 'cmd_delete', 'cmd_reorder', 'cmd_split',
    'cmd_manual_split', 'cmd_detect', 'cmd_reset', 'setup_parser',
]
