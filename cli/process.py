import signal

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn

from infra.config import Config
from infra.storage.schemas import PromptOverrides
from pipeline.batch import BatchAction, BatchContext, BatchState, CancellationToken, run_batch
from cli.helpers import build_services, format_time, read_prompt_file

console = Console()


def cmd_process(args):
    services = build_services()
    book = services.library.get_book(args.book_id)

    page_ids = args.pages or None
    if page_ids and args.sort:
        page_ids = services.ledger.sort_ids(book.id, page_ids)

    action = BatchAction(args.action)
    context = BatchContext(
        store=services.store,
        ledger=services.ledger,
        images=services.images,
        target_language=args.target_language or Config.target_language,
        prompt_overrides=PromptOverrides(
            ocr=read_prompt_file(args.ocr_prompt),
            translation=read_prompt_file(args.translation_prompt),
            summary=read_prompt_file(args.summary_prompt),
        ),
        metrics=services.store.metrics(book.id),
    )
    if action == BatchAction.DETECT_SPLIT:
        context.split_engine = services.split_engine(book.id)
    else:
        context.pipeline = services.pipeline(book.id)

    token = CancellationToken()

    def _request_stop(signum, frame):
        if not token.cancelled:
            console.print("\n[yellow]⚠️  Stopping after the current page...[/yellow]")
        token.cancel()

    total = len(page_ids) if page_ids is not None else len(services.ledger.list_ordered(book.id))
    print(f"\n📖 {book.title}: {action.value} on {total} page(s)")

    progress = Progress(
        TextColumn("   {task.description}"),
        BarColumn(bar_width=40),
        TaskProgressColumn(),
        TextColumn("•"),
        TimeElapsedColumn(),
        TextColumn("•"),
        TextColumn("{task.fields[suffix]}", justify="right"),
        transient=True,
    )

    previous_handler = signal.signal(signal.SIGINT, _request_stop)
    try:
        with progress:
            task_id = progress.add_task(action.value, total=total, suffix="")

            def on_progress(event):
                failed = len(event.failed_ids)
                suffix = f"{len(event.completed_ids)} ok" + (f", {failed} failed" if failed else "")
                progress.update(task_id, completed=event.current_index, suffix=suffix)

            report = run_batch(
                book.id,
                page_ids,
                action,
                context,
                token=token,
                on_progress=on_progress,
                log_dir=services.store.log_dir(book.id),
            )
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    attempted = len(report.completed_ids) + len(report.failed_ids)
    symbol = "✅" if report.state == BatchState.COMPLETED else "⏹️ "
    print(f"{symbol} {report.state.value}: {attempted}/{report.total_count} pages in {format_time(report.elapsed_seconds)}")
    print(f"   Completed: {len(report.completed_ids)}")
    if report.failed_ids:
        print(f"   ❌ Failed: {len(report.failed_ids)}")
        for page_id in report.failed_ids:
            print(f"      {page_id}: {report.errors.get(page_id, '')}")
    if report.not_attempted_ids:
        print(f"   Not attempted: {len(report.not_attempted_ids)}")

    cost = services.store.metrics(book.id).get_total_cost()
    print(f"   Book cost to date: ${cost:.4f}")


def setup_process_parser(subparsers):
    process_parser = subparsers.add_parser('process', help='Run a page action across a book')
    process_parser.add_argument('book_id', help='Book ID')
    process_parser.add_argument(
        '--action',
        choices=[a.value for a in BatchAction],
        default=BatchAction.PROCESS_ALL.value,
        help='Action to run on each page (default: process-all)'
    )
    process_parser.add_argument('--pages', nargs='+', default=None, help='Page ids to process, in order (default: all)')
    process_parser.add_argument('--sort', action='store_true', help='Put --pages into book order first')
    process_parser.add_argument('--target-language', default=None, help=f'Translation language (default: {Config.target_language})')
    process_parser.add_argument('--ocr-prompt', default=None, help='File with a custom transcription prompt')
    process_parser.add_argument('--translation-prompt', default=None, help='File with a custom translation prompt')
    process_parser.add_argument('--summary-prompt', default=None, help='File with a custom summary prompt')
    process_parser.set_defaults(func=cmd_process)
