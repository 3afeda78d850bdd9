"""Tests for whisker.report — developer-facing messages."""

from __future__ import annotations

import io
import sys
from unittest.mock import patch

from whisker.report import MISPLACED_QUERY_NOTICE, Reporter


def _reporter(**kwargs: object) -> tuple[Reporter, io.StringIO]:
    buf = io.StringIO()
    return Reporter(buf, **kwargs), buf  # type: ignore[arg-type]


class TestReporter:
    """Reporter — warnings, errors, activities."""

    def test_defaults_to_stderr(self) -> None:
        buf = io.StringIO()
        with patch.object(sys, "stderr", buf):
            Reporter().info("hello")
        assert "hello" in buf.getvalue()

    def test_warn_is_recorded(self) -> None:
        reporter, buf = _reporter()
        reporter.warn("careful")
        assert reporter.warnings == ["careful"]
        assert "warn" in buf.getvalue()
        assert "careful" in buf.getvalue()

    def test_error_with_exception(self) -> None:
        reporter, buf = _reporter()
        reporter.error("Query compilation failed", ValueError("bad token"))
        assert "Query compilation failed: bad token" in buf.getvalue()

    def test_info_silent_when_not_verbose(self) -> None:
        reporter, buf = _reporter(verbose=False)
        reporter.info("hidden")
        reporter.pending_activity("query-extraction")
        assert buf.getvalue() == ""

    def test_pending_activity_announced_once(self) -> None:
        reporter, buf = _reporter()
        reporter.pending_activity("query-extraction")
        reporter.pending_activity("query-extraction")
        assert buf.getvalue().count("query-extraction") == 1

        reporter.activity_done("query-extraction")
        reporter.pending_activity("query-extraction")
        assert buf.getvalue().count("query-extraction") == 2

    def test_log_dedents(self) -> None:
        reporter, buf = _reporter()
        reporter.log("    line one\n    line two")
        assert buf.getvalue() == "line one\nline two\n"


class TestMisplacedQueries:
    """misplaced_queries — one warning per path, one notice per call."""

    def test_warns_each_sorted_then_explains_once(self) -> None:
        reporter, buf = _reporter()
        reporter.misplaced_queries({"/s/b.html", "/s/a.html"})

        assert reporter.warnings == [
            'The query in the non-route template "/s/a.html" will not be run.',
            'The query in the non-route template "/s/b.html" will not be run.',
        ]
        output = buf.getvalue()
        assert output.count("static_query") == MISPLACED_QUERY_NOTICE.count("static_query")

    def test_nothing_for_empty(self) -> None:
        reporter, buf = _reporter()
        reporter.misplaced_queries(())
        assert buf.getvalue() == ""
        assert reporter.warnings == []
