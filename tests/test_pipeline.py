"""Tests for run_export orchestration and the export event log."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from exporter import ExportContext, ExportError
from observability import ObservabilityStore
from pipeline import export_filename, run_export, safe_slug


class _FakeExporter:
    def __init__(self, *, mismatches=0, error=None):
        self.error = error
        self.last_result = SimpleNamespace(blocks=2, payloads=3, mismatches=mismatches)

    def extension_label(self):
        return ".htm"

    def mime_type(self):
        return "text/html"

    def presave(self, content):
        if self.error is not None:
            raise self.error
        return "<html>" + content + "</html>"


@pytest.fixture
def store(tmp_path):
    return ObservabilityStore(tmp_path / "obs")


class TestRunExport:

    def test_success_records_event(self, store):
        result = run_export(content="abc", context=ExportContext(course_name="Bio 101"), exporter=_FakeExporter(), store=store)
        assert result.status == "ok"
        assert result.course == "bio_101"
        assert result.html == "<html>abc</html>"
        assert result.mime_type == "text/html"
        assert result.filename.startswith("questions-bio_101-")
        assert result.filename.endswith(".htm")
        assert result.counts == {"blocks": 2, "payloads": 3, "mismatches": 0, "input_chars": 3, "output_chars": 16}

        events = store.list_events(course="bio_101")
        assert len(events) == 1
        assert events[0]["status"] == "success"
        assert events[0]["level"] == "INFO"
        assert events[0]["source_hash"] == result.source_hash

    def test_mismatches_logged_as_warning(self, store):
        run_export(content="x", context=ExportContext(course_name="c"), exporter=_FakeExporter(mismatches=1), store=store)
        assert store.list_events(course="c")[0]["level"] == "WARNING"

    def test_export_error_recorded_and_reraised(self, store):
        exporter = _FakeExporter(error=ExportError("noquestions", "No questions to export"))
        with pytest.raises(ExportError):
            run_export(content="x", context=ExportContext(course_name="c"), exporter=exporter, store=store)
        event = store.list_events(course="c")[0]
        assert event["status"] == "error"
        assert event["error_key"] == "noquestions"

    def test_events_can_be_disabled(self, store):
        run_export(content="x", context=ExportContext(course_name="c"), exporter=_FakeExporter(), store=store, record_events=False)
        assert store.list_events(course="c") == []

    @pytest.mark.parametrize("content", [None, b"bytes"])
    def test_content_must_be_text(self, content, store):
        with pytest.raises(ValueError):
            run_export(content=content, context=ExportContext(), exporter=_FakeExporter(), store=store)

    def test_real_exporter(self, shortanswer_xml, store):
        result = run_export(content=shortanswer_xml, context=ExportContext(course_name="Biology"), store=store)
        assert result.counts["blocks"] == 2
        assert "<table" in result.html


class TestNaming:

    def test_safe_slug(self):
        assert safe_slug("Bio 101") == "bio_101"
        assert safe_slug("  ") == "course"
        assert safe_slug("a/b") == "a_b"

    def test_export_filename(self):
        now = datetime(2024, 5, 1, 13, 45, tzinfo=timezone.utc)
        assert export_filename(ExportContext(course_name="Bio 101"), ".htm", now=now) == "questions-bio_101-20240501-1345.htm"
