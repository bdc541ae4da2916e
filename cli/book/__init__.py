from cli.book.commands import cmd_create, cmd_list, cmd_show, cmd_status, cmd_delete, cmd_export
from pipeline.export import ExportFormat


def setup_parser(subparsers):
    """Setup book command parser."""
    book_parser = subparsers.add_parser('book', help='Book management commands')
    book_subparsers = book_parser.add_subparsers(dest='book_command', help='Book command')
    book_subparsers.required = True

    create_parser = book_subparsers.add_parser('create', help='Create an empty book')
    create_parser.add_argument('title', help='Book title')
    create_parser.add_argument('--author', default='Unknown', help='Author (default: Unknown)')
    create_parser.add_argument('--language', default='Latin', help='Source language (default: Latin)')
    create_parser.add_argument('--published', default='Unknown', help='Publication date or place')
    create_parser.add_argument('--display-title', default=None, help='Short title for listings')
    create_parser.set_defaults(func=cmd_create)

    list_parser = book_subparsers.add_parser('list', help='List all books')
    list_parser.set_defaults(func=cmd_list)

    show_parser = book_subparsers.add_parser('show', help='Show a book and its pages')
    show_parser.add_argument('book_id', help='Book ID')
    show_parser.set_defaults(func=cmd_show)

    status_parser = book_subparsers.add_parser('status', help='Set book status')
    status_parser.add_argument('book_id', help='Book ID')
    status_parser.add_argument('status', choices=['draft', 'in_progress', 'complete', 'published'])
    status_parser.set_defaults(func=cmd_status)

    delete_parser = book_subparsers.add_parser('delete', help='Delete a book and its pages')
    delete_parser.add_argument('book_id', help='Book ID')
    delete_parser.add_argument('-y', '--yes', action='store_true', help='Skip confirmation')
    delete_parser.set_defaults(func=cmd_delete)

    export_parser = book_subparsers.add_parser('export', help='Export transcriptions and translations as text')
    export_parser.add_argument('book_id', help='Book ID')
    export_parser.add_argument(
        '--format',
        choices=[f.value for f in ExportFormat],
        default=ExportFormat.TRANSLATION.value,
        help='What to export (default: translation)'
    )
    export_parser.add_argument('-o', '--output', default=None, help='Output file, or - for stdout (default: <title>-<format>.txt)')
    export_parser.set_defaults(func=cmd_export)


__all__ = ['cmd_create', 'cmd_list', 'cmd_show', 'cmd_status', 'cmd_delete', 'cmd_export', 'setup_parser']
