"""
Structured logger tests.
"""

import logging

import pytest

from docrag.util.logging import StructuredLogger


@pytest.fixture
def structured(caplog):
    caplog.set_level(logging.DEBUG, logger="docrag.test")
    return StructuredLogger("docrag.test")


def test_log_operation_levels(structured, caplog):
    structured.log_operation("op.ok", "success", {"n": 1})
    structured.log_operation("op.skip", "skipped")
    structured.log_operation("op.bad", "failed", {"error": "boom"})

    levels = [(r.levelno, r.getMessage()) for r in caplog.records]
    assert levels == [
        (logging.INFO, "Operation: op.ok, Status: success, Details: {'n': 1}"),
        (logging.WARNING, "Operation: op.skip, Status: skipped"),
        (logging.ERROR, "Operation: op.bad, Status: failed, Details: {'error': 'boom'}"),
    ]


def test_document_transition_to_error_logs_error(structured, caplog):
    structured.log_document_transition("doc1", "processing", "error", {"error": "bad"})

    record = caplog.records[-1]
    assert record.levelno == logging.ERROR
    assert "document.transition" in record.getMessage()
    assert "'document_id': 'doc1'" in record.getMessage()


def test_batch_with_failures_reports_partial(structured, caplog):
    structured.log_batch(3, 2, 1, ["doc2"])

    message = caplog.records[-1].getMessage()
    assert "Status: partial" in message
    assert "'document_ids': ['doc2']" in message


def test_index_build_rounds_elapsed(structured, caplog):
    structured.log_index_build(150, 16, 4, 12.34567)

    assert "'elapsed_ms': 12.35" in caplog.records[-1].getMessage()


def test_heartbeat_task_message(structured, caplog):
    structured.log_heartbeat_task("auto_index", 1.0, 1.5)

    assert "completed in 500.0ms" in caplog.records[-1].getMessage()


def test_handler_is_added_once():
    first = StructuredLogger("docrag.handlers")
    second = StructuredLogger("docrag.handlers")

    assert first.logger is second.logger
    assert len(second.logger.handlers) == 1
