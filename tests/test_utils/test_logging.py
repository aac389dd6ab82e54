"""
Unit tests for structured logging.
"""

import json
import logging
import sys

from area_insights.utils.logging import StructuredFormatter, request_id_context


def make_record(message="hello", **extra):
    record = logging.LogRecord("insights", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:

    def test_renders_json_with_context(self):
        # Arrange
        token = request_id_context.set("req-42")
        record = make_record(
            "Area cache hit",
            cache_key="40.713_-74.006_3000",
            latitude=40.7128,
            longitude=-74.006,
            duration=1.5,
            extra_fields={"cache_hit": True},
        )

        # Act
        try:
            entry = json.loads(StructuredFormatter().format(record))
        finally:
            request_id_context.reset(token)

        # Assert
        assert entry["message"] == "Area cache hit"
        assert entry["level"] == "INFO"
        assert entry["request_id"] == "req-42"
        assert entry["cache_key"] == "40.713_-74.006_3000"
        assert entry["duration_ms"] == 1.5
        assert entry["cache_hit"] is True

    def test_omits_empty_context(self):
        entry = json.loads(StructuredFormatter().format(make_record()))

        assert "request_id" not in entry
        assert "latitude" not in entry

    def test_includes_exception(self):
        try:
            raise ValueError("bad coordinate")
        except ValueError:
            record = logging.LogRecord("insights", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["exception"]["type"] == "ValueError"
        assert entry["exception"]["message"] == "bad coordinate"
