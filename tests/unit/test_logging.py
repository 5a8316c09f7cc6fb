"""Unit tests for structured logging and PII masking"""

import json
import logging

from conditions_gateway.infrastructure.observability.logging import (
    CustomJsonFormatter,
    SensitiveDataFilter,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "Transaction submitted", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_filter_masks_sensitive_extras():
    """Test PII is masked before formatting; long values keep their last 4 characters"""
    record = make_record(card_number="4111111111111111", email="a@b.io", transaction_id="txn_1")

    assert SensitiveDataFilter().filter(record) is True
    assert record.card_number == "***1111"
    assert record.email == "***"
    assert record.transaction_id == "txn_1"


def test_json_formatter_adds_service_metadata():
    record = make_record(correlation_id="req-1", cvv="123")
    SensitiveDataFilter().filter(record)

    output = json.loads(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s").format(record))

    assert output["service"] == "conditions-gateway"
    assert output["level"] == "INFO"
    assert output["correlation_id"] == "req-1"
    assert output["cvv"] == "***"
    assert "timestamp" in output
