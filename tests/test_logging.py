"""
Tests for tax engine logging (tax_kernel/logging_config.py).

Covers what the engine's own events look like on the wire: tenant/order
context around invoice issuance, snapshot summaries, and how tax engine
errors are serialized when logged with exc_info.
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from tax_engines.snapshot_calculator import SnapshotCalculator
from tax_kernel.domain.money import RoundingMode
from tax_kernel.domain.rules import AsLine, SurchargeRule
from tax_kernel.exceptions import UnknownTaxCodeError
from tax_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from tax_kernel.services.invoice_sequencer import InvoiceSequencer

NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def _by_message(records: list[dict], message: str) -> dict:
    return next(r for r in records if r["message"] == message)


class TestInvoiceIssueContext:
    @pytest.fixture
    def sequencer(self, session_factory) -> InvoiceSequencer:
        return InvoiceSequencer(session_factory, backoff_seconds=0)

    def test_every_issue_record_carries_tenant_and_order(self, sequencer, numbering, captured_logs):
        sequencer.issue("tenant-7", numbering, now=NOW, order_id="order-42")

        records = [r for r in captured_logs() if r["logger"].startswith("tax_kernel.services")]
        assert records
        assert all(r["tenant_id"] == "tenant-7" for r in records)
        assert all(r["order_id"] == "order-42" for r in records)

        issued = _by_message(records, "invoice_number_issued")
        assert issued["invoice_number"] == "FAC-A000001"
        assert issued["period_key"] == "2024"
        assert issued["reused"] is False

    def test_issue_without_order_omits_order_id(self, sequencer, numbering, captured_logs):
        sequencer.issue("tenant-7", numbering, now=NOW)

        issued = _by_message(captured_logs(), "invoice_number_issued")
        assert issued["tenant_id"] == "tenant-7"
        assert "order_id" not in issued

    def test_context_does_not_leak_into_later_records(
        self, sequencer, numbering, make_profile, make_order, captured_logs,
    ):
        sequencer.issue("tenant-7", numbering, now=NOW, order_id="order-42")
        SnapshotCalculator().calculate(make_order((1, 1000)), make_profile())

        completed = _by_message(captured_logs(), "tax_snapshot_completed")
        assert "tenant_id" not in completed
        assert "order_id" not in completed

    def test_caller_binding_wraps_snapshot_and_issue(
        self, sequencer, numbering, make_profile, make_order, captured_logs,
    ):
        with LogContext.bind(tenant_id="tenant-7", order_id="order-42"):
            SnapshotCalculator().calculate(make_order((1, 1000)), make_profile())
            sequencer.issue("tenant-7", numbering, now=NOW, order_id="order-42")
            assert LogContext.current() == {"tenant_id": "tenant-7", "order_id": "order-42"}

        records = captured_logs()
        assert _by_message(records, "tax_snapshot_completed")["order_id"] == "order-42"
        assert _by_message(records, "invoice_number_issued")["tenant_id"] == "tenant-7"
        assert LogContext.current() == {}


class TestSnapshotEvents:
    def test_completed_summary_fields(self, make_profile, make_order, captured_logs):
        profile = make_profile(
            profile_id="gt:v3",
            surcharges=(SurchargeRule(code="service", percent_bps=1000, taxable=True, tax_code="std"),),
            delivery=AsLine(taxable=True, tax_code="std"),
        )
        SnapshotCalculator().calculate(make_order((2, 2500), delivery_fee_cents=1000), profile)

        records = captured_logs()
        started = _by_message(records, "tax_snapshot_started")
        assert started["profile_id"] == "gt:v3"
        assert started["line_count"] == 1
        assert started["order_type"] == "dine-in"

        completed = _by_message(records, "tax_snapshot_completed")
        assert completed["jurisdiction_code"] == ""
        assert completed["rate_bucket_count"] == 1
        assert completed["exemption_applied"] is False
        # 5000 + 500 service + 1000 delivery, 12% on each
        assert completed["sub_total_cents"] == 6500
        assert completed["tax_cents"] == 780
        assert completed["grand_total_cents"] == 7280

    def test_dangling_code_logged_before_raise(self, make_profile, make_order, captured_logs):
        profile = make_profile(delivery=AsLine(taxable=True, tax_code="vat"))

        with pytest.raises(UnknownTaxCodeError):
            SnapshotCalculator().calculate(make_order((1, 1000)), profile)

        error = _by_message(captured_logs(), "tax_code_not_found")
        assert error["level"] == "ERROR"
        assert error["tax_code"] == "vat"
        assert error["referenced_by"] == "delivery"
        assert error["available_codes"] == ["std"]


class TestErrorSerialization:
    def test_tax_error_code_and_details(self, captured_logs):
        logger = get_logger("test")
        try:
            raise UnknownTaxCodeError(
                "vat", "surcharge 'service'", available_codes=("std", "zero"), jurisdiction_code="GT-01",
            )
        except UnknownTaxCodeError:
            logger.error("tax_profile_rejected", exc_info=True)

        record = _by_message(captured_logs(), "tax_profile_rejected")
        assert record["error_type"] == "UnknownTaxCodeError"
        assert record["error_code"] == "UNKNOWN_TAX_CODE"
        assert record["error_details"] == {
            "tax_code": "vat",
            "referenced_by": "surcharge 'service'",
            "available_codes": ["std", "zero"],
            "jurisdiction_code": "GT-01",
        }
        assert "Traceback" in record["traceback"]

    def test_foreign_error_has_no_code(self, captured_logs):
        logger = get_logger("test")
        try:
            raise KeyError("std")
        except KeyError:
            logger.warning("lookup_failed", exc_info=True)

        record = _by_message(captured_logs(), "lookup_failed")
        assert record["error_type"] == "KeyError"
        assert "error_code" not in record
        assert "error_details" not in record

    def test_enum_and_datetime_extras(self, captured_logs):
        get_logger("test").info("profile_summary", extra={
            "rounding": RoundingMode.HALF_EVEN,
            "issued_at": NOW,
        })

        record = _by_message(captured_logs(), "profile_summary")
        assert record["rounding"] == "half_even"
        assert record["issued_at"] == "2024-06-15T12:00:00+00:00"


class TestLogContext:
    def test_nested_bind_restores_outer(self):
        with LogContext.bind(tenant_id="t1"):
            with LogContext.bind(order_id="o1"):
                assert LogContext.current() == {"tenant_id": "t1", "order_id": "o1"}
            assert LogContext.current() == {"tenant_id": "t1"}
        assert LogContext.current() == {}

    def test_none_values_keep_outer_value(self):
        with LogContext.bind(tenant_id="t1", order_id="o1"):
            with LogContext.bind(tenant_id="t2", order_id=None):
                assert LogContext.current() == {"tenant_id": "t2", "order_id": "o1"}

    def test_restored_when_block_raises(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(tenant_id="t1"):
                raise RuntimeError("boom")
        assert LogContext.current() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="actor_id"):
            with LogContext.bind(actor_id="u1"):
                pass


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _fresh_configuration(self):
        reset_logging()
        yield
        reset_logging()

    def test_writes_json_lines_to_stream(self):
        stream = StringIO()
        configure_logging(stream=stream)
        get_logger("engines.snapshot").info("tax_snapshot_started", extra={"line_count": 2})
        get_logger("engines.snapshot").debug("line_unclassified")

        lines = stream.getvalue().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["logger"] == "tax_kernel.engines.snapshot"
        assert record["line_count"] == 2

    def test_second_call_is_ignored(self):
        first, second = StringIO(), StringIO()
        configure_logging(stream=first, level=logging.WARNING)
        configure_logging(stream=second, level=logging.DEBUG)

        root = logging.getLogger("tax_kernel")
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
