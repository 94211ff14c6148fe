"""Tests for the structured logging system (fulfillment_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from fulfillment_kernel.domain.order_status import OrderStatus
from fulfillment_kernel.exceptions import ConflictError
from fulfillment_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "fulfillment_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "order_status_changed", extra={"from_status": "processing", "version": 3}
        )

        record = _parse_log(stream)
        assert record["from_status"] == "processing"
        assert record["version"] == 3

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(order_id="ord-1", actor_id="ops-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["order_id"] == "ord-1"
        assert record["actor_id"] == "ops-1"

    def test_kernel_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ConflictError("ord-1", "processing", "cancelled")
        except ConflictError:
            get_logger("test").error("conflict", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ConflictError"
        assert record["exc_code"] == "ORDER_STATUS_CONFLICT"
        assert record["exc_expected_status"] == "processing"
        assert record["exc_actual_status"] == "cancelled"
        assert "traceback" in record

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "order_id" not in record
        assert "customer_id" not in record

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "typed",
            extra={"order_uuid": uid, "amount": Decimal("12.50"), "status": OrderStatus.SHIPPED},
        )

        record = _parse_log(stream)
        assert record["order_uuid"] == str(uid)
        assert record["amount"] == "12.50"
        assert record["status"] == "shipped"

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]

    def test_configure_is_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        get_logger("test").info("once")
        assert len(_parse_all_logs(stream)) == 1


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", customer_id="c-1")
        assert LogContext.get_all() == {"correlation_id": "x", "customer_id": "c-1"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous_value(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner"):
            assert LogContext.get_all()["actor_id"] == "inner"
        assert LogContext.get_all()["actor_id"] == "outer"

    def test_bind_restores_none(self):
        with LogContext.bind(customer_id="temp"):
            assert LogContext.get_all()["customer_id"] == "temp"
        assert "customer_id" not in LogContext.get_all()

    def test_bind_ignores_none_and_unknown_fields(self):
        with LogContext.bind(actor_id=None, tenant="acme"):
            assert LogContext.get_all() == {}
