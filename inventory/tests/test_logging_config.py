"""Tests for commit event logging and the JSONL trace."""

import json
import logging
from datetime import datetime

import pytest

from inventory.logging_config import (
    CommitTraceHandler,
    ConsoleFormatter,
    get_logger,
    log_commit_event,
    setup_logging,
)
from inventory.reconcile import ReconciliationEngine
from inventory.tests.conftest import RecordingAPI


@pytest.fixture
def trace_dir(tmp_path):
    logger = setup_logging(console=False, trace_dir=tmp_path / "logs")
    yield tmp_path / "logs"
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


def read_trace(trace_dir):
    files = list(trace_dir.glob("commits_*.jsonl"))
    assert len(files) == 1
    return [json.loads(line) for line in files[0].read_text(encoding="utf-8").splitlines()]


class TestCommitTrace:
    def test_trace_fields_are_promoted(self, trace_dir):
        log_commit_event(
            "operation_failed",
            "delete_image(image 7) failed",
            level=logging.ERROR,
            product_id="42",
            step=2,
            method="delete_image",
            target="image 7",
            error="HTTP 404",
        )

        entry, = read_trace(trace_dir)
        assert entry["event"] == "operation_failed"
        assert entry["level"] == "ERROR"
        assert (entry["product_id"], entry["step"], entry["method"], entry["target"]) == (
            "42", 2, "delete_image", "image 7"
        )
        assert entry["message"] == "delete_image(image 7) failed"
        assert entry["data"] == {"error": "HTTP 404"}

    def test_plain_log_lines_are_not_traced(self, trace_dir):
        get_logger("api").warning("retrying")
        log_commit_event("commit_started", "Committing 0 operation(s)", product_id="1")

        entry, = read_trace(trace_dir)
        assert entry["event"] == "commit_started"
        assert entry["step"] is None
        assert "data" not in entry

    def test_commit_writes_one_entry_per_operation(self, trace_dir, product, previews):
        api = RecordingAPI(fail_on={"delete_variant"})
        engine = ReconciliationEngine(api, previews=previews)
        session = engine.begin_edit(product)
        session.draft.variants.patch_existing("v1", {"stock": "2"})
        session.draft.variants.mark_existing_deleted("v2")

        engine.commit(session)

        events = [(e["event"], e["method"]) for e in read_trace(trace_dir)]
        assert events[0] == ("commit_started", None)
        assert events[-1] == ("commit_finished", None)
        assert sorted(events[1:-1]) == [
            ("operation_failed", "delete_variant"),
            ("operation_ok", "update_variant_fields"),
        ]
        failed = [e for e in read_trace(trace_dir) if e["event"] == "operation_failed"][0]
        assert failed["product_id"] == "p1"
        assert failed["data"]["status_code"] == 500


class TestConsoleFormatter:
    def test_commit_context_is_appended(self):
        record = logging.LogRecord("inventory.reconcile", logging.ERROR, __file__, 1, "boom", (), None)
        record.commit_data = {"product_id": "42", "step": 4, "method": "delete_variant"}

        assert ConsoleFormatter().format(record).endswith("[ERROR] boom (product_id=42 step=4)")

    def test_plain_record_is_unchanged(self):
        record = logging.LogRecord("inventory.api", logging.INFO, __file__, 1, "hello", (), None)

        assert ConsoleFormatter().format(record).endswith("[INFO] hello")


def test_trace_path_is_daily(tmp_path):
    handler = CommitTraceHandler(tmp_path)
    assert handler.path_for(datetime(2026, 3, 9)).name == "commits_20260309.jsonl"
