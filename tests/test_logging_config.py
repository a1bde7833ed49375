"""
Logging configuration tests — formatters and request-context stamping.
"""

import json
import logging

from coverage_tracker.middleware.logging_config import (
    JSONFormatter,
    ReadableFormatter,
    RequestContextFilter,
)


def _record(msg="Coverage updated", **extra):
    record = logging.LogRecord("coverage_tracker.services", logging.INFO, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_keeps_extra_fields():
    line = JSONFormatter().format(_record(
        story_id="s-1", previous_score="80.00", new_score="95.00", reviewer_id=None,
    ))
    entry = json.loads(line)
    assert entry["message"] == "Coverage updated"
    assert entry["level"] == "INFO"
    assert entry["story_id"] == "s-1"
    assert entry["previous_score"] == "80.00"
    assert entry["new_score"] == "95.00"
    assert "reviewer_id" not in entry
    assert "args" not in entry


def test_readable_formatter_appends_context():
    line = ReadableFormatter().format(_record(request_id="abc123", story_id="s-1"))
    assert line.endswith("Coverage updated [request=abc123 story=s-1]")
    assert "\033[" not in line


def test_request_context_filter_stamps_ids(app):
    with app.test_request_context("/api/stories"):
        from flask import g

        g.request_id = "req-9"
        g.jwt_user_id = "u-1"
        record = _record()
        assert RequestContextFilter().filter(record) is True
        assert record.request_id == "req-9"
        assert record.user_id == "u-1"

        explicit = _record(user_id="u-2")
        RequestContextFilter().filter(explicit)
        assert explicit.user_id == "u-2"


def test_request_context_filter_outside_request():
    record = _record()
    assert RequestContextFilter().filter(record) is True
    assert not hasattr(record, "request_id")
