"""
Tests for the structured logging layer: event naming, trace context and
exact rendering of logical times and amounts.
"""

from __future__ import annotations

import json
from decimal import Decimal

import structlog

from lottery_indexer.lottery_logging import bind_trace, get_logger
from lottery_indexer.lottery_logging.logger import MAX_SAFE_INT, configure_structlog, short


def test_event_type_level_and_logger_name(captured_logs):
    get_logger("lottery_indexer.test").warning("classifier_test_event", rows=3)

    (entry,) = captured_logs
    assert entry["event_type"] == "classifier_test_event"
    assert entry["logger"] == "lottery_indexer.test"
    assert entry["level"] == "warning"
    assert entry["rows"] == 3
    assert "timestamp" in entry
    assert "event" not in entry


def test_bind_trace_scopes_context(captured_logs):
    logger = get_logger("lottery_indexer.test")
    with bind_trace("trace-42", lt=7):
        logger.info("inside")
    logger.info("outside")

    inside, outside = captured_logs
    assert (inside["trace_id"], inside["lt"]) == ("trace-42", 7)
    assert "trace_id" not in outside
    assert "lt" not in outside


def test_large_logical_times_and_decimals_render_as_strings(captured_logs):
    get_logger("lottery_indexer.test").info(
        "amounts", lt=2**62 + 1, small=MAX_SAFE_INT, amount=Decimal("0.000000001"), flag=True
    )

    (entry,) = captured_logs
    assert entry["lt"] == str(2**62 + 1)
    assert entry["small"] == MAX_SAFE_INT
    assert entry["amount"] == "0.000000001"
    assert entry["flag"] is True


def test_json_renderer_output():
    rendered: list[str] = []

    def keep(logger, method_name, event_dict):
        rendered.append(structlog.processors.JSONRenderer()(logger, method_name, event_dict))
        raise structlog.DropEvent

    configure_structlog(renderer=keep)
    try:
        with bind_trace("trace-9"):
            get_logger("lottery_indexer.test").info("coordinator_batch_persisted", checkpoint=2**60)
    finally:
        configure_structlog()

    line = json.loads(rendered[0])
    assert line["event_type"] == "coordinator_batch_persisted"
    assert line["checkpoint"] == str(2**60)
    assert line["trace_id"] == "trace-9"


def test_short_address():
    assert short(None) == ""
    assert short("0:abc") == "0:abc"
    assert short("0:" + "a" * 64) == "0:" + "a" * 14 + "..."
