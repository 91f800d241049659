"""
Unit tests for logging helpers.
"""

import json
import logging

from arsenal.core.logging import CustomJsonFormatter, RequestIdFilter
from arsenal.middleware.request_context import RequestContext, _request_context


def make_record(msg="Ticket TKT-202603-00001 created", **extra):
    record = logging.LogRecord("arsenal.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_request_id_defaults_outside_request():
    record = make_record()

    RequestIdFilter().filter(record)

    assert record.request_id == "-"


def test_request_id_from_context():
    token = _request_context.set(
        RequestContext(request_id="req-42")
    )
    try:
        record = make_record()
        RequestIdFilter().filter(record)
    finally:
        _request_context.reset(token)

    assert record.request_id == "req-42"


def test_json_formatter_redacts_credentials():
    formatter = CustomJsonFormatter("%(message)s")
    record = make_record(api_key="re_live_123", request_id="req-1")

    output = json.loads(formatter.format(record))

    assert output["message"] == "Ticket TKT-202603-00001 created"
    assert output["level"] == "INFO"
    assert output["request_id"] == "req-1"
    assert output["api_key"] == "***REDACTED***"
