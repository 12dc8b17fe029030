"""Tests for CLI log formatting."""

import json
import logging
import sys

import pytest

from hubcatalog.cli.utils import json_log_formatter

pytestmark = pytest.mark.unit


def make_record(msg: str, *args, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="hubcatalog.cache.manager",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


class TestJsonLogFormatter:
    def test_record_rendered_as_one_json_object(self):
        record = make_record("Fetch of %s timed out", "https://github.com/x/y")

        line = json_log_formatter().format(record)
        payload = json.loads(line)

        assert "\n" not in line
        assert payload["event"] == "Fetch of https://github.com/x/y timed out"
        assert payload["level"] == "warning"
        assert payload["logger"] == "hubcatalog.cache.manager"
        assert "timestamp" in payload

    def test_exception_included(self):
        try:
            raise RuntimeError("clone exploded")
        except RuntimeError:
            record = make_record("Unexpected failure", exc_info=sys.exc_info())

        payload = json.loads(json_log_formatter().format(record))

        assert payload["event"] == "Unexpected failure"
        assert "RuntimeError: clone exploded" in payload["exception"]
