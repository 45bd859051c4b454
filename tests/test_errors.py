"""
Tests for error capture into the reporting dataset.
"""

import asyncio

import pytest

from harvest.contexts.scraping.errors import ErrorReporter


class Page:
    def __init__(self, url, html):
        self.url = url
        self.html = html


def test_capture_pushes_report_with_snapshot(reporting_sink, tmp_path):
    reporter = ErrorReporter(reporting_sink, run_id="run-1", snapshot_dir=tmp_path)

    report = asyncio.run(reporter.capture(ValueError("bad row"), url="https://x/praca/", html="<html>page</html>"))

    assert reporter.captured == 1
    stored = reporting_sink.export_records()
    assert len(stored) == 1
    assert stored[0]["run_id"] == "run-1"
    assert stored[0]["error_name"] == "ValueError"
    assert stored[0]["error_message"] == "bad row"
    assert stored[0]["page_url"] == "https://x/praca/"
    with open(report["page_html_snapshot"], encoding="utf-8") as f:
        assert f.read() == "<html>page</html>"


def test_no_snapshot_without_html(reporting_sink, tmp_path):
    reporter = ErrorReporter(reporting_sink, snapshot_dir=tmp_path / "snapshots")

    report = asyncio.run(reporter.capture(RuntimeError("timeout"), url="https://x"))

    assert report["page_html_snapshot"] is None
    assert not (tmp_path / "snapshots").exists()


def test_wrapped_handler_error_is_captured_and_reraised(reporting_sink, tmp_path):
    reporter = ErrorReporter(reporting_sink, snapshot_dir=tmp_path)

    async def handler(ctx):
        raise KeyError("offer_id")

    with pytest.raises(KeyError):
        asyncio.run(reporter.wrap(handler)(Page("https://x/praca/", "<html></html>")))

    assert reporting_sink.count() == 1


def test_error_is_captured_once(reporting_sink, tmp_path):
    reporter = ErrorReporter(reporting_sink, snapshot_dir=tmp_path)

    async def inner(ctx):
        raise RuntimeError("boom")

    outer = reporter.wrap(reporter.wrap(inner))

    with pytest.raises(RuntimeError):
        asyncio.run(outer(Page("https://x", None)))

    assert reporter.captured == 1
    assert reporting_sink.count() == 1


def test_reporter_without_sink_only_counts(tmp_path):
    reporter = ErrorReporter(None, snapshot_dir=tmp_path)

    asyncio.run(reporter.capture(RuntimeError("boom"), url=None))

    assert reporter.captured == 1
