"""Tests for the HTTP sidecar."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import json
import threading
import urllib.error
import urllib.request
from http.server import HTTPServer

import pytest

from privacy_shield import MemoryDocumentStore, PlainTextTranscriber, PrivacyGate, ProcessingStatus
from privacy_shield import server as sidecar

SCENARIO = "Betaling fra Ola Nordmann til konto 1234.56.78901, kontakt: ola@example.com"
ANALYSIS = json.dumps({
    "document_type": "bank_statement",
    "summary": "Betaling fra [EMAIL A]",
    "concerns": [],
    "deadlines": [],
    "urgency": "low",
    "recommended_action": None,
})


class EchoAnalyzer:
    def analyze(self, masked_text):
        return ANALYSIS


def _running(gate):
    sidecar.set_gate(gate)
    httpd = HTTPServer(("127.0.0.1", 0), sidecar.ShieldHandler)
    threading.Thread(target=httpd.serve_forever, daemon=True).start()
    try:
        yield f"http://127.0.0.1:{httpd.server_address[1]}", gate
    finally:
        httpd.shutdown()
        httpd.server_close()
        sidecar._gate = None


@pytest.fixture
def sidecar_url():
    yield from _running(PrivacyGate(MemoryDocumentStore(), PlainTextTranscriber(), EchoAnalyzer()))


@pytest.fixture
def sidecar_without_analyzer():
    yield from _running(PrivacyGate(MemoryDocumentStore(), PlainTextTranscriber()))


def _call(url, path, body=None):
    data = None if body is None else json.dumps(body).encode("utf-8")
    req = urllib.request.Request(url + path, data=data, method="GET" if body is None else "POST")
    req.add_header("Content-Type", "application/json")
    try:
        with urllib.request.urlopen(req, timeout=5) as resp:
            return resp.status, json.loads(resp.read().decode("utf-8"))
    except urllib.error.HTTPError as e:
        return e.code, json.loads(e.read().decode("utf-8"))


def _ingest(gate):
    doc = gate.create_document("text/plain")
    gate.extract(doc.id, SCENARIO.encode("utf-8"))
    return doc.id


# ── Stateless endpoints ──────────────────────────────────────────────

def test_health(sidecar_url):
    url, _ = sidecar_url
    assert _call(url, "/health") == (200, {"status": "ok"})


def test_detect_and_redact(sidecar_url):
    url, _ = sidecar_url
    status, data = _call(url, "/detect", {"text": SCENARIO})
    assert status == 200
    assert [f["category"] for f in data["findings"]] == ["BANK_ACCOUNT", "EMAIL"]

    findings = data["findings"]
    findings[0]["confirmed"] = False
    status, data = _call(url, "/redact", {"text": SCENARIO, "findings": findings})
    assert status == 200
    assert data["mask_map"] == {"[EMAIL A]": "ola@example.com"}

    status, data = _call(url, "/unredact", {"text": data["masked_text"], "mask_map": data["mask_map"]})
    assert data["text"] == SCENARIO


# ── Document review surface ──────────────────────────────────────────

def test_review_and_analyze(sidecar_url):
    url, gate = sidecar_url
    doc_id = _ingest(gate)

    status, data = _call(url, f"/documents/{doc_id}/analyze", {})
    assert status == 400
    assert data["error"] == "GATE_VIOLATION"

    status, data = _call(url, f"/documents/{doc_id}/findings")
    assert status == 200
    assert len(data["findings"]) == 2

    status, data = _call(url, f"/documents/{doc_id}/toggle", {"index": 0})
    assert status == 200
    assert data["confirmed"] is False

    status, data = _call(url, f"/documents/{doc_id}/confirm", {})
    assert status == 200
    assert data["redaction_count"] == 1

    status, data = _call(url, f"/documents/{doc_id}/analyze", {})
    assert status == 200
    assert data["analysis"]["summary"] == "Betaling fra ola@example.com"

    status, data = _call(url, f"/documents/{doc_id}/analyze", {})
    assert status == 409
    assert data["error"] == "CONFLICT"


def test_skip(sidecar_url):
    url, gate = sidecar_url
    doc_id = _ingest(gate)
    status, data = _call(url, f"/documents/{doc_id}/skip", {})
    assert status == 200
    assert data["redaction_status"] == "skipped"


def test_unknown_document(sidecar_url):
    url, _ = sidecar_url
    status, data = _call(url, "/documents/missing/findings")
    assert status == 404
    assert data["error"] == "NOT_FOUND"


def test_analyze_without_analyzer(sidecar_without_analyzer):
    url, gate = sidecar_without_analyzer
    doc_id = _ingest(gate)
    _call(url, f"/documents/{doc_id}/confirm", {})

    status, data = _call(url, f"/documents/{doc_id}/analyze", {})
    assert status == 503
    assert data == {"error": "NOT_CONFIGURED", "message": "No analyzer configured"}
    assert gate.store.get(doc_id).processing_status is ProcessingStatus.REDACTION_CONFIRMED


def test_bad_request_has_no_detail(sidecar_url):
    url, gate = sidecar_url
    doc_id = _ingest(gate)
    status, data = _call(url, f"/documents/{doc_id}/toggle", {})
    assert status == 400
    assert data == {"error": "BAD_REQUEST", "message": "Invalid request"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
