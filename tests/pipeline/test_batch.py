"""
Tests for pipeline/batch (orchestrator and actions)

Key behaviors to verify:
1. Items run sequentially in the order given, one event per item
2. A failing item is recorded and the run continues
3. Cancellation lets the in-flight item finish and starts no new item
4. Pacing waits end early on cancellation
5. Duplicate ids and concurrent runs are rejected
6. run_batch handlers persist stage results and metrics, carrying
   previous-page context written earlier in the same run
"""

import json
import threading
import time

import pytest
import requests

from infra.errors import InvalidArgumentError, InvalidStateError
from infra.storage.metrics import MetricsManager
from pipeline.batch import (
    BatchAction,
    BatchContext,
    BatchOrchestrator,
    BatchState,
    CancellationToken,
    ItemState,
    build_handler,
    run_batch,
)
from pipeline.split import SplitEngine
from pipeline.transcription import ChainedTranscriptionPipeline
from pipeline.transcription.prompts import PREVIOUS_TRANSCRIPTION_HEADER


class TestOrchestrator:

    def test_sequential_order(self):
        seen = []
        orchestrator = BatchOrchestrator(seen.append, pacing_seconds=0)

        events = list(orchestrator.run(["c", "a", "b"]))

        assert seen == ["c", "a", "b"]
        assert [e.current_page_id for e in events] == ["c", "a", "b", None]
        assert [e.current_index for e in events] == [1, 2, 3, 3]
        assert orchestrator.state == BatchState.COMPLETED
        assert orchestrator.completed_ids == ["c", "a", "b"]

    def test_failures_continue(self):
        def handler(page_id):
            if page_id == "b":
                raise ValueError("bad page")

        orchestrator = BatchOrchestrator(handler, pacing_seconds=0)

        events = list(orchestrator.run(["a", "b", "c"]))

        assert orchestrator.state == BatchState.COMPLETED
        assert orchestrator.completed_ids == ["a", "c"]
        assert orchestrator.failed_ids == ["b"]
        assert orchestrator.errors == {"b": "bad page"}
        assert orchestrator.item_states["b"] == ItemState.FAILED
        assert events[1].failed_ids == ["b"]

    def test_closing_event_reports_completion(self):
        orchestrator = BatchOrchestrator(lambda page_id: None, pacing_seconds=0)

        events = list(orchestrator.run(["a", "b"]))

        assert [e.state for e in events[:-1]] == [BatchState.RUNNING, BatchState.RUNNING]
        closing = events[-1]
        assert closing.state == BatchState.COMPLETED
        assert closing.current_page_id is None
        assert closing.completed_ids == ["a", "b"]

    def test_empty_list_completes(self):
        orchestrator = BatchOrchestrator(lambda page_id: None, pacing_seconds=0)

        events = list(orchestrator.run([]))

        assert [(e.current_index, e.total_count, e.state) for e in events] == [(0, 0, BatchState.COMPLETED)]
        assert orchestrator.state == BatchState.COMPLETED

    def test_duplicate_ids_rejected(self):
        orchestrator = BatchOrchestrator(lambda page_id: None, pacing_seconds=0)

        with pytest.raises(InvalidArgumentError):
            orchestrator.run(["a", "b", "a"])
        assert orchestrator.state == BatchState.IDLE

    def test_concurrent_run_rejected(self):
        orchestrator = BatchOrchestrator(lambda page_id: None, pacing_seconds=0)
        first = orchestrator.run(["a"])

        with pytest.raises(InvalidStateError):
            orchestrator.run(["b"])

        list(first)
        assert orchestrator.state == BatchState.COMPLETED

    def test_negative_pacing_rejected(self):
        with pytest.raises(InvalidArgumentError):
            BatchOrchestrator(lambda page_id: None, pacing_seconds=-1)

    def test_cancel_before_start(self):
        seen = []
        token = CancellationToken()
        token.cancel()
        orchestrator = BatchOrchestrator(seen.append, pacing_seconds=0)

        events = list(orchestrator.run(["a", "b"], token))

        assert seen == []
        assert orchestrator.state == BatchState.STOPPED
        assert events[-1].current_page_id is None
        assert orchestrator.not_attempted_ids == ["a", "b"]

    def test_cancel_while_item_in_flight(self):
        """Cancelling during item 3 of 5 lets it finish and attempts nothing after."""
        token = CancellationToken()
        in_flight = threading.Event()
        release = threading.Event()
        attempted = []

        def handler(page_id):
            attempted.append(page_id)
            if page_id == "p3":
                in_flight.set()
                assert release.wait(5)

        orchestrator = BatchOrchestrator(handler, pacing_seconds=0)
        events = []
        runner = threading.Thread(
            target=lambda: events.extend(orchestrator.run(["p1", "p2", "p3", "p4", "p5"], token))
        )
        runner.start()

        assert in_flight.wait(5)
        token.cancel()
        release.set()
        runner.join(5)

        assert attempted == ["p1", "p2", "p3"]
        assert orchestrator.completed_ids == ["p1", "p2", "p3"]
        assert orchestrator.state == BatchState.STOPPED
        assert orchestrator.not_attempted_ids == ["p4", "p5"]
        assert events[-1].state == BatchState.STOPPED
        assert events[-1].current_index == 3

    def test_pacing_interrupted_by_cancel(self):
        token = CancellationToken()
        seen = []
        timers = []

        def handler(page_id):
            seen.append(page_id)
            timer = threading.Timer(0.05, token.cancel)
            timers.append(timer)
            timer.start()

        orchestrator = BatchOrchestrator(handler, pacing_seconds=30)

        start = time.time()
        list(orchestrator.run(["a", "b"], token))
        for timer in timers:
            timer.join()

        assert time.time() - start < 5
        assert seen == ["a"]
        assert orchestrator.state == BatchState.STOPPED

    def test_closing_iterator_stops_run(self):
        orchestrator = BatchOrchestrator(lambda page_id: None, pacing_seconds=0)
        events = orchestrator.run(["a", "b", "c"])

        next(events)
        events.close()

        assert orchestrator.state == BatchState.STOPPED
        assert orchestrator.not_attempted_ids == ["b", "c"]


@pytest.fixture
def context(store, ledger, images, fake_client, tmp_path):
    return BatchContext(
        store=store,
        ledger=ledger,
        pipeline=ChainedTranscriptionPipeline(fake_client, vision_model="vision/test", text_model="text/test"),
        split_engine=SplitEngine(store, ledger, images, client=fake_client, model="vision/test"),
        images=images,
        target_language="English",
        metrics=MetricsManager(tmp_path / "metrics.json"),
    )


class TestRunBatch:

    def test_transcribe_carries_previous_page(self, context, store, book, fake_client, add_pages):
        pages = add_pages(3)
        fake_client.queue("A", "B", "C")

        report = run_batch(book.id, None, BatchAction.TRANSCRIBE, context, pacing_seconds=0)

        assert report.state == BatchState.COMPLETED
        assert report.completed_ids == [p.id for p in pages]
        assert [store.get_page(p.id).ocr.text for p in pages] == ["A", "B", "C"]
        assert store.get_page(pages[0].id).ocr.language == book.language
        assert PREVIOUS_TRANSCRIPTION_HEADER not in fake_client.prompts[0]
        assert fake_client.prompts[1].endswith("A")
        assert fake_client.prompts[2].endswith("B")

    def test_metrics_recorded(self, context, book, fake_client, add_pages):
        (page,) = add_pages(1)

        run_batch(book.id, [page.id], BatchAction.TRANSCRIBE, context, pacing_seconds=0)

        entry = context.metrics.get(f"ocr_{page.id}")
        assert entry["cost_usd"] == fake_client.cost
        assert entry["page_number"] == 1
        assert entry["model"] == "vision/test"

    def test_translate_needs_ocr(self, context, store, book, add_pages):
        """Pages without a transcription fail; the rest are translated."""
        first, second = add_pages(2)
        run_batch(book.id, [first.id], BatchAction.TRANSCRIBE, context, pacing_seconds=0)

        report = run_batch(book.id, None, BatchAction.TRANSLATE, context, pacing_seconds=0)

        assert report.completed_ids == [first.id]
        assert report.failed_ids == [second.id]
        assert store.get_page(first.id).translation.language == "English"
        assert store.get_page(second.id).translation is None

    def test_failure_does_not_stop_batch(self, context, store, book, fake_client, add_pages):
        pages = add_pages(3)
        fake_client.queue("A", requests.exceptions.ConnectionError("down"), "C")

        report = run_batch(book.id, None, BatchAction.TRANSCRIBE, context, pacing_seconds=0)

        assert report.failed_ids == [pages[1].id]
        assert report.completed_ids == [pages[0].id, pages[2].id]
        assert pages[1].id in report.errors
        assert store.get_page(pages[2].id).ocr.text == "C"

    def test_process_all_persists_partial_results(self, context, store, book, fake_client, add_pages):
        (page,) = add_pages(1)
        fake_client.queue("OCR TEXT", "TRANSLATED", requests.exceptions.Timeout("slow"))

        report = run_batch(book.id, None, BatchAction.PROCESS_ALL, context, pacing_seconds=0)

        stored = store.get_page(page.id)
        assert report.failed_ids == [page.id]
        assert stored.ocr.text == "OCR TEXT"
        assert stored.translation.text == "TRANSLATED"
        assert stored.summary is None

    def test_summarize_after_process_all(self, context, store, book, fake_client, add_pages):
        (page,) = add_pages(1)
        run_batch(book.id, None, BatchAction.PROCESS_ALL, context, pacing_seconds=0)

        run_batch(book.id, None, BatchAction.SUMMARIZE, context, pacing_seconds=0)

        assert store.get_page(page.id).summary.text == fake_client.default
        assert f"{fake_client.default}" in fake_client.prompts[-1]

    def test_detect_split(self, context, store, book, fake_client, add_pages):
        (page,) = add_pages(1)
        fake_client.queue(json.dumps({
            "isTwoPageSpread": True,
            "confidence": "medium",
            "reasoning": "gutter",
            "leftPage": {"xmin": 0, "xmax": 500, "ymin": 0, "ymax": 1000},
            "rightPage": {"xmin": 500, "xmax": 1000, "ymin": 0, "ymax": 1000},
        }))

        report = run_batch(book.id, None, BatchAction.DETECT_SPLIT, context, pacing_seconds=0)

        assert report.completed_ids == [page.id]
        assert store.get_page(page.id).split_detection.confidence == "medium"
        assert context.metrics.get(f"detect-split_{page.id}")["is_two_page_spread"] is True
        assert len(store.list_pages(book.id)) == 1

    def test_page_from_other_book_fails(self, context, library, book, add_pages):
        (page,) = add_pages(1)
        other = library.create_book("Other")

        report = run_batch(other.id, [page.id], BatchAction.TRANSCRIBE, context, pacing_seconds=0)

        assert report.failed_ids == [page.id]

    def test_missing_page_fails(self, context, book, add_pages):
        (page,) = add_pages(1)

        report = run_batch(book.id, ["ghost", page.id], BatchAction.TRANSCRIBE, context, pacing_seconds=0)

        assert report.failed_ids == ["ghost"]
        assert report.completed_ids == [page.id]

    def test_progress_callback_and_log(self, context, book, add_pages, tmp_path):
        add_pages(2)
        events = []

        run_batch(
            book.id, None, BatchAction.TRANSCRIBE, context,
            on_progress=events.append, pacing_seconds=0, log_dir=tmp_path / "logs",
        )

        assert [e.current_index for e in events] == [1, 2, 2]
        assert events[-1].current_page_id is None
        assert events[-1].state == BatchState.COMPLETED
        assert (tmp_path / "logs" / "batch.jsonl").exists()

    def test_cancelled_report(self, context, book, add_pages):
        add_pages(2)
        token = CancellationToken()
        token.cancel()

        report = run_batch(book.id, None, BatchAction.TRANSCRIBE, context, token=token, pacing_seconds=0)

        assert report.state == BatchState.STOPPED
        assert len(report.not_attempted_ids) == 2


class TestBuildHandler:

    def test_missing_collaborator(self, store, ledger):
        context = BatchContext(store=store, ledger=ledger)

        with pytest.raises(InvalidArgumentError):
            build_handler(BatchAction.TRANSCRIBE, context)

    def test_unknown_action(self, context):
        with pytest.raises(ValueError):
            build_handler("illuminate", context)
