"""HTTP sidecar for privacy-shield — the review surface over JSON.

Runs as a lightweight stdlib HTTP server on localhost.

Endpoints:
    GET  /health                       — Health check
    POST /detect                       — {"text"} → findings
    POST /redact                       — {"text", "findings"?} → masked text + map
    POST /unredact                     — {"text", "mask_map"} → restored text
    GET  /documents/<id>/findings      — Findings for review
    POST /documents/<id>/toggle        — {"index"} → flip one confirmed flag
    POST /documents/<id>/confirm       — {"selected"?} → apply redaction
    POST /documents/<id>/skip          — Skip redaction entirely
    POST /documents/<id>/analyze       — Run analysis

The standalone entry point has no analyzer. The analyze route answers 503
NOT_CONFIGURED unless a gate with one is injected via serve(gate=...) or
set_gate().

Errors never carry internal detail: clients get the error category and a
short message.
"""

from __future__ import annotations
import json
import logging
import os
import re
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any

from .config import DEFAULT_DB, configure_logging, create_gate, load_config, load_from_yaml
from .detector import detect
from .errors import (
    ConflictState,
    DocumentNotFound,
    GateViolation,
    NotConfigured,
    PrivacyShieldError,
)
from .gate import PrivacyGate
from .redactor import redact
from .types import Finding
from .unredact import unredact

logger = logging.getLogger(__name__)

DEFAULT_PORT = int(os.environ.get("PRIVACY_SHIELD_PORT", "18792"))

_DOC_ROUTE = re.compile(r"^/documents/([\w\-]+)/(findings|toggle|confirm|skip|analyze)$")

# Shared state
_gate: PrivacyGate | None = None


def set_gate(gate: PrivacyGate) -> None:
    global _gate
    _gate = gate


def _get_gate() -> PrivacyGate:
    global _gate
    if _gate is None:
        _gate = create_gate({"store": {"backend": "sqlite", "path": DEFAULT_DB}})
    return _gate


def _status_for(exc: Exception) -> int:
    if isinstance(exc, DocumentNotFound):
        return 404
    if isinstance(exc, GateViolation):
        return 400
    if isinstance(exc, ConflictState):
        return 409
    if isinstance(exc, NotConfigured):
        return 503
    if isinstance(exc, (IndexError, ValueError)):
        return 400
    return 500


class ShieldHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the privacy-shield sidecar."""

    def _read_json(self) -> dict[str, Any]:
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length).decode("utf-8")
        data = json.loads(body) if body else {}
        if not isinstance(data, dict):
            raise ValueError("Request body must be a JSON object")
        return data

    def _respond(self, status: int, data: Any) -> None:
        body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _fail(self, exc: Exception) -> None:
        status = _status_for(exc)
        if isinstance(exc, PrivacyShieldError):
            category, message = exc.category, str(exc)
        elif status == 400:
            category, message = "BAD_REQUEST", "Invalid request"
        else:
            category, message = "INTERNAL", "An unexpected error occurred"
        logger.warning("[SIDECAR] %s %s -> %d %s", self.command, self.path, status, category)
        self._respond(status, {"error": category, "message": message})

    def log_message(self, format: str, *args: Any) -> None:
        # Request lines go through _fail / the module logger instead
        pass

    def do_GET(self) -> None:
        try:
            if self.path == "/health":
                self._respond(200, {"status": "ok"})
                return
            m = _DOC_ROUTE.match(self.path)
            if m and m.group(2) == "findings":
                doc = _get_gate().store.get(m.group(1))
                self._respond(200, {
                    "document_id": doc.id,
                    "processing_status": doc.processing_status.value,
                    "redaction_status": doc.redaction_status.value,
                    "findings": [f.to_dict() for f in doc.findings],
                })
                return
            self._respond(404, {"error": "NOT_FOUND", "message": "not found"})
        except Exception as e:
            self._fail(e)

    def do_POST(self) -> None:
        try:
            body = self._read_json()

            if self.path == "/detect":
                findings = detect(body.get("text", ""), _get_gate().patterns)
                self._respond(200, {"findings": [f.to_dict() for f in findings]})
                return

            if self.path == "/redact":
                text = body.get("text", "")
                if "findings" in body:
                    findings = [Finding.from_dict(d) for d in body["findings"]]
                else:
                    findings = detect(text, _get_gate().patterns)
                result = redact(text, findings)
                self._respond(200, {"masked_text": result.masked_text, "mask_map": result.mask_map})
                return

            if self.path == "/unredact":
                text = unredact(body.get("text", ""), body.get("mask_map") or {})
                self._respond(200, {"text": text})
                return

            m = _DOC_ROUTE.match(self.path)
            if m is None or m.group(2) == "findings":
                self._respond(404, {"error": "NOT_FOUND", "message": "not found"})
                return

            gate = _get_gate()
            doc_id, action = m.groups()
            if action == "toggle":
                finding = gate.toggle_confirmed(doc_id, int(body["index"]))
                self._respond(200, finding.to_dict())
            elif action == "confirm":
                result = gate.confirm_redaction(doc_id, body.get("selected"))
                self._respond(200, {
                    "masked_text": result.masked_text,
                    "redaction_count": len(result.mask_map),
                })
            elif action == "skip":
                doc = gate.skip_redaction(doc_id)
                self._respond(200, {"skipped": True, "redaction_status": doc.redaction_status.value})
            else:
                analysis = gate.analyze(doc_id)
                self._respond(200, {"analysis": analysis.to_dict()})

        except (KeyError, TypeError, json.JSONDecodeError) as e:
            if isinstance(e, DocumentNotFound):
                self._fail(e)
            else:
                self._fail(ValueError("Invalid request"))
        except Exception as e:
            self._fail(e)


def serve(port: int = DEFAULT_PORT, gate: PrivacyGate | None = None) -> None:
    """Start the privacy-shield HTTP sidecar."""
    if gate is not None:
        set_gate(gate)
    server = HTTPServer(("127.0.0.1", port), ShieldHandler)
    logger.info("privacy-shield sidecar listening on http://127.0.0.1:%d", port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
        server.shutdown()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="privacy-shield HTTP sidecar")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--db", default=DEFAULT_DB)
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--log-level", help="Overrides log_level from --config")
    args = parser.parse_args()
    cfg = load_from_yaml(args.config) if args.config else load_config({})
    configure_logging(args.log_level or cfg["log_level"])
    cfg.update(store_backend="sqlite", store_path=args.db)
    serve(port=args.port, gate=create_gate(cfg))
