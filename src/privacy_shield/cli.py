"""CLI interface for privacy-shield.

Usage:
    # Detect PII (stdin: text, stdout: JSON findings)
    echo 'Konto 1234.56.78901' | python -m privacy_shield.cli detect

    # Mask everything detected (stdout: masked text + mask map)
    echo 'Konto 1234.56.78901' | python -m privacy_shield.cli redact

    # Restore masks (stdin: text with masks)
    echo 'Fra ████.██.78901' | python -m privacy_shield.cli unredact --map map.json

    # Review a stored document
    python -m privacy_shield.cli ingest --media-type text/plain < letter.txt
    python -m privacy_shield.cli show --document-id <id>
    python -m privacy_shield.cli toggle --document-id <id> --index 1
    python -m privacy_shield.cli confirm --document-id <id>
    python -m privacy_shield.cli skip --document-id <id>

Document state is persisted in SQLite so review survives across calls.
--config reads skip_categories and log_level from a YAML file (see config.py).
"""

from __future__ import annotations
import argparse
import json
import sys

from .analysis import PlainTextTranscriber
from .config import DEFAULT_DB, configure_logging, create_gate, load_config, load_from_yaml
from .detector import detect
from .errors import PrivacyShieldError
from .gate import PrivacyGate
from .patterns import get_patterns
from .redactor import redact
from .types import Document, Finding
from .unredact import unredact


def _dump(data: object) -> None:
    json.dump(data, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _skip(args: argparse.Namespace) -> list[str]:
    """--skip-categories on top of skip_categories from --config."""
    given = {c.strip().upper() for c in args.skip_categories.split(",") if c.strip()}
    return sorted(given | args.config_data["skip_categories"])


def _build_gate(args: argparse.Namespace) -> PrivacyGate:
    return create_gate(
        {
            "skip_categories": _skip(args),
            "store": {"backend": "sqlite", "path": args.db},
        },
        transcriber=PlainTextTranscriber(),
    )


def _review_view(doc: Document) -> dict:
    return {
        "document_id": doc.id,
        "processing_status": doc.processing_status.value,
        "redaction_status": doc.redaction_status.value,
        "findings": [{"index": i, **f.to_dict()} for i, f in enumerate(doc.findings)],
    }


def cmd_detect(args: argparse.Namespace) -> None:
    """Detect PII in plain text on stdin."""
    findings = detect(sys.stdin.read(), get_patterns(_skip(args)))
    _dump({"findings": [f.to_dict() for f in findings], "count": len(findings)})


def cmd_redact(args: argparse.Namespace) -> None:
    """Mask PII in plain text on stdin, using --findings if given."""
    text = sys.stdin.read()
    if args.findings:
        with open(args.findings, encoding="utf-8") as f:
            findings = [Finding.from_dict(d) for d in json.load(f)]
    else:
        findings = detect(text, get_patterns(_skip(args)))
    result = redact(text, findings)
    _dump({"masked_text": result.masked_text, "mask_map": result.mask_map})


def cmd_unredact(args: argparse.Namespace) -> None:
    """Restore masks in text from stdin."""
    with open(args.map, encoding="utf-8") as f:
        mask_map = json.load(f)
    sys.stdout.write(unredact(sys.stdin.read(), mask_map))


def cmd_ingest(args: argparse.Namespace) -> None:
    """Create a document from stdin and run detection on it."""
    gate = _build_gate(args)
    doc = gate.create_document(args.media_type)
    doc = gate.extract(doc.id, sys.stdin.buffer.read())
    _dump(_review_view(doc))


def cmd_show(args: argparse.Namespace) -> None:
    gate = _build_gate(args)
    _dump(_review_view(gate.store.get(args.document_id)))


def cmd_toggle(args: argparse.Namespace) -> None:
    gate = _build_gate(args)
    finding = gate.toggle_confirmed(args.document_id, args.index)
    _dump({"index": args.index, **finding.to_dict()})


def cmd_confirm(args: argparse.Namespace) -> None:
    gate = _build_gate(args)
    selected = None
    if args.select is not None:
        selected = [int(i) for i in args.select.split(",") if i.strip()]
    result = gate.confirm_redaction(args.document_id, selected)
    _dump({"masked_text": result.masked_text, "redaction_count": len(result.mask_map)})


def cmd_skip(args: argparse.Namespace) -> None:
    gate = _build_gate(args)
    doc = gate.skip_redaction(args.document_id)
    _dump({"document_id": doc.id, "redaction_status": doc.redaction_status.value})


def cmd_list(args: argparse.Namespace) -> None:
    gate = _build_gate(args)
    _dump(gate.store.list_ids())


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="privacy_shield",
        description="Norwegian PII detection and reversible masking",
    )
    parser.add_argument("--db", default=DEFAULT_DB, help="SQLite document store path")
    parser.add_argument("--skip-categories", default="",
                        help="Comma-separated PII categories to ignore")
    parser.add_argument("--config", help="YAML config file (skip_categories, log_level)")
    parser.add_argument("--log-level", help="Logging level (default: WARNING, or log_level from --config)")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("detect", help="Detect PII (text stdin)")
    p = sub.add_parser("redact", help="Mask PII (text stdin)")
    p.add_argument("--findings", help="JSON file with reviewed findings")
    p = sub.add_parser("unredact", help="Restore masks (text stdin)")
    p.add_argument("--map", required=True, help="JSON file with the mask map")
    p = sub.add_parser("ingest", help="Store a document and detect PII (stdin)")
    p.add_argument("--media-type", default="text/plain")
    for name in ("show", "toggle", "confirm", "skip"):
        p = sub.add_parser(name)
        p.add_argument("--document-id", required=True)
        if name == "toggle":
            p.add_argument("--index", type=int, required=True)
        if name == "confirm":
            p.add_argument("--select", help="Comma-separated finding indices to mask")
    sub.add_parser("list", help="List stored documents")

    args = parser.parse_args(argv)
    try:
        args.config_data = load_from_yaml(args.config) if args.config else load_config({})
    except OSError as e:
        sys.stderr.write(f"error: {e}\n")
        return 1
    level = args.log_level or (args.config_data["log_level"] if args.config else "WARNING")
    configure_logging(level)

    cmds = {
        "detect": cmd_detect,
        "redact": cmd_redact,
        "unredact": cmd_unredact,
        "ingest": cmd_ingest,
        "show": cmd_show,
        "toggle": cmd_toggle,
        "confirm": cmd_confirm,
        "skip": cmd_skip,
        "list": cmd_list,
    }
    try:
        cmds[args.command](args)
    except (PrivacyShieldError, IndexError, ValueError) as e:
        sys.stderr.write(f"error: {e}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
