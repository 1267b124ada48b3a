"""Tests for config loading and the CLI."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import io
import json

import pytest

from privacy_shield import MemoryDocumentStore, SqliteDocumentStore, create_gate, load_config
from privacy_shield.cli import main
from privacy_shield.config import load_from_yaml

SCENARIO = "Betaling fra Ola Nordmann til konto 1234.56.78901, kontakt: ola@example.com"


# ── Config ───────────────────────────────────────────────────────────

def test_load_config_defaults():
    cfg = load_config({})
    assert cfg["skip_categories"] == set()
    assert cfg["store_backend"] == "memory"
    assert cfg["log_level"] == "INFO"


def test_load_config_nested():
    cfg = load_config({
        "privacy_shield": {
            "skip_categories": ["org_number"],
            "log_level": "debug",
            "store": {"backend": "sqlite", "path": "/tmp/x.db"},
        }
    })
    assert cfg["skip_categories"] == {"ORG_NUMBER"}
    assert cfg["log_level"] == "DEBUG"
    assert cfg["store_backend"] == "sqlite"
    assert cfg["store_path"] == "/tmp/x.db"


def test_create_gate_memory():
    gate = create_gate({"skip_categories": ["ORG_NUMBER"]})
    assert isinstance(gate.store, MemoryDocumentStore)
    assert "ORG_NUMBER" not in [p.category for p in gate.patterns]


def test_create_gate_sqlite(tmp_path):
    gate = create_gate({"store": {"backend": "sqlite", "path": str(tmp_path / "d.db")}})
    assert isinstance(gate.store, SqliteDocumentStore)
    gate.store.close()


def test_unknown_backend():
    with pytest.raises(ValueError):
        create_gate({"store": {"backend": "redis"}})


def test_load_from_yaml(tmp_path):
    pytest.importorskip("yaml")
    path = tmp_path / "shield.yaml"
    path.write_text(
        "privacy_shield:\n"
        "  skip_categories:\n"
        "    - PHONE\n"
        "  store:\n"
        "    backend: memory\n",
        encoding="utf-8",
    )
    cfg = load_from_yaml(path)
    assert cfg["skip_categories"] == {"PHONE"}
    gate = create_gate(cfg)
    assert "PHONE" not in [p.category for p in gate.patterns]


# ── CLI ──────────────────────────────────────────────────────────────

def _stdin(monkeypatch, text):
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(text.encode("utf-8")), encoding="utf-8"))


def _run(monkeypatch, capsys, argv, stdin=""):
    _stdin(monkeypatch, stdin)
    code = main(argv)
    out = capsys.readouterr()
    return code, out.out, out.err


def test_cli_detect(monkeypatch, capsys, tmp_path):
    code, out, _ = _run(monkeypatch, capsys, ["--db", str(tmp_path / "d.db"), "detect"], SCENARIO)
    assert code == 0
    data = json.loads(out)
    assert data["count"] == 2
    assert [f["mask"] for f in data["findings"]] == ["████.██.78901", "[EMAIL A]"]


def test_cli_redact_and_unredact(monkeypatch, capsys, tmp_path):
    db = str(tmp_path / "d.db")
    code, out, _ = _run(monkeypatch, capsys, ["--db", db, "redact"], SCENARIO)
    assert code == 0
    data = json.loads(out)
    assert data["masked_text"].endswith("kontakt: [EMAIL A]")

    map_path = tmp_path / "map.json"
    map_path.write_text(json.dumps(data["mask_map"], ensure_ascii=False), encoding="utf-8")
    code, out, _ = _run(monkeypatch, capsys, ["--db", db, "unredact", "--map", str(map_path)],
                        data["masked_text"])
    assert code == 0
    assert out == SCENARIO


def test_cli_review_flow(monkeypatch, capsys, tmp_path):
    db = str(tmp_path / "d.db")
    code, out, _ = _run(monkeypatch, capsys, ["--db", db, "ingest"], SCENARIO)
    assert code == 0
    doc_id = json.loads(out)["document_id"]

    code, out, _ = _run(monkeypatch, capsys, ["--db", db, "toggle", "--document-id", doc_id, "--index", "0"])
    assert json.loads(out)["confirmed"] is False

    code, out, _ = _run(monkeypatch, capsys, ["--db", db, "confirm", "--document-id", doc_id])
    data = json.loads(out)
    assert "1234.56.78901" in data["masked_text"]
    assert data["redaction_count"] == 1

    code, out, _ = _run(monkeypatch, capsys, ["--db", db, "show", "--document-id", doc_id])
    shown = json.loads(out)
    assert shown["redaction_status"] == "user_confirmed"
    assert shown["processing_status"] == "redaction_confirmed"

    code, out, _ = _run(monkeypatch, capsys, ["--db", db, "list"])
    assert json.loads(out) == [doc_id]


def test_cli_reports_conflict(monkeypatch, capsys, tmp_path):
    db = str(tmp_path / "d.db")
    _, out, _ = _run(monkeypatch, capsys, ["--db", db, "ingest"], SCENARIO)
    doc_id = json.loads(out)["document_id"]
    _run(monkeypatch, capsys, ["--db", db, "skip", "--document-id", doc_id])

    code, _, err = _run(monkeypatch, capsys, ["--db", db, "toggle", "--document-id", doc_id, "--index", "0"])
    assert code == 1
    assert err.startswith("error:")


def test_cli_unknown_document(monkeypatch, capsys, tmp_path):
    code, _, err = _run(monkeypatch, capsys, ["--db", str(tmp_path / "d.db"), "show", "--document-id", "nope"])
    assert code == 1
    assert "not found" in err


def _yaml_config(tmp_path):
    path = tmp_path / "shield.yaml"
    path.write_text(
        "privacy_shield:\n"
        "  log_level: debug\n"
        "  skip_categories: [EMAIL]\n",
        encoding="utf-8",
    )
    return str(path)


def test_cli_config_file(monkeypatch, capsys, tmp_path):
    pytest.importorskip("yaml")
    levels = []
    monkeypatch.setattr("privacy_shield.cli.configure_logging", levels.append)
    code, out, _ = _run(monkeypatch, capsys, ["--config", _yaml_config(tmp_path), "detect"], SCENARIO)
    assert code == 0
    assert [f["category"] for f in json.loads(out)["findings"]] == ["BANK_ACCOUNT"]
    assert levels == ["DEBUG"]


def test_cli_log_level_overrides_config(monkeypatch, capsys, tmp_path):
    pytest.importorskip("yaml")
    levels = []
    monkeypatch.setattr("privacy_shield.cli.configure_logging", levels.append)
    _run(monkeypatch, capsys, ["--config", _yaml_config(tmp_path), "--log-level", "ERROR", "detect"], SCENARIO)
    _run(monkeypatch, capsys, ["detect"], SCENARIO)
    assert levels == ["ERROR", "WARNING"]


def test_cli_missing_config_file(monkeypatch, capsys, tmp_path):
    pytest.importorskip("yaml")
    code, _, err = _run(monkeypatch, capsys, ["--config", str(tmp_path / "absent.yaml"), "detect"])
    assert code == 1
    assert err.startswith("error:")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
