"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from api import app


@pytest.fixture
def client():
    return TestClient(app)


class TestSanitizeEndpoint:

    def test_strip_strategy(self, client):
        resp = client.post("/sanitize", json={"payload": "<div>x</div>", "repair_tool": False})
        assert resp.status_code == 200
        assert resp.json() == {"strategy": "strip", "payload": "x"}

    def test_repair_strategy(self, client):
        resp = client.post("/sanitize", json={"payload": "<b>x</b>"})
        assert resp.json() == {"strategy": "repair", "payload": "<strong>x</strong>"}


class TestSegmentEndpoint:

    def test_counts(self, client):
        doc = '<question type="x"><text><![CDATA[<b>a</b>]]></text></question>'
        resp = client.post("/segment", json={"document": doc})
        body = resp.json()
        assert body["success"] is True
        assert body["document"] == '<question type="x"><text><![CDATA[<strong>a</strong>]]></text></question>'
        assert body["counts"] == {"blocks": 1, "payloads": 1, "mismatches": 0}

    def test_no_blocks(self, client):
        body = client.post("/segment", json={"document": "plain"}).json()
        assert body["success"] is False
        assert body["document"] == "plain"


class TestExportEndpoint:

    def test_html_download(self, client, shortanswer_xml):
        resp = client.post("/export", json={"content": shortanswer_xml, "course_name": "Biology 101"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert 'filename="questions-biology_101-' in resp.headers["content-disposition"]
        assert "<table" in resp.text

    def test_json_result(self, client, shortanswer_xml):
        resp = client.post("/export", json={"content": shortanswer_xml, "course_name": "Biology 101", "format": "json"})
        body = resp.json()
        assert body["status"] == "ok"
        assert body["course"] == "biology_101"
        assert body["counts"]["blocks"] == 2
        assert "data:image/png;base64," in body["html"]

    def test_no_questions_is_422(self, client):
        resp = client.post("/export", json={"content": "<quiz></quiz>", "course_name": "c"})
        assert resp.status_code == 422
        assert resp.json()["detail"] == {"key": "noquestions", "message": "No questions to export"}

    def test_invalid_direction_rejected(self, client):
        resp = client.post("/export", json={"content": "x", "text_direction": "up"})
        assert resp.status_code == 422

    def test_events_and_metrics(self, client, shortanswer_xml):
        client.post("/export", json={"content": shortanswer_xml, "course_name": "Bio"})
        client.post("/export", json={"content": "<quiz></quiz>", "course_name": "Bio"})

        events = client.get("/exports/bio/events").json()["events"]
        assert [e["status"] for e in events] == ["error", "success"]

        errors = client.get("/exports/bio/events", params={"status": "error"}).json()["events"]
        assert [e["error_key"] for e in errors] == ["noquestions"]

        metrics = client.get("/exports/bio/metrics").json()
        assert metrics["event_count"] == 2
        assert metrics["alerts"][0]["type"] == "export_failure"
