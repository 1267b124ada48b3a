"""YAML/dict config loader for privacy-shield.

Supports loading from a YAML file or a plain dict (for embedding in a
larger application config).

Example YAML:

    privacy_shield:
      skip_categories:
        - ORG_NUMBER
      log_level: INFO
      store:
        backend: sqlite          # "memory" or "sqlite"
        path: ~/.privacy-shield/documents.db
"""

from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Any

from .analysis import Analyzer, Transcriber
from .gate import PrivacyGate
from .patterns import get_patterns
from .store import DocumentStore, MemoryDocumentStore
from .store_sqlite import SqliteDocumentStore

DEFAULT_DB = os.environ.get(
    "PRIVACY_SHIELD_DB",
    str(Path.home() / ".privacy-shield" / "documents.db"),
)


def load_config(data: dict[str, Any]) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    # Support nested under "privacy_shield" key or flat
    if "privacy_shield" in data:
        data = data["privacy_shield"] or {}

    store = data.get("store") or {}
    return {
        "skip_categories": {c.upper() for c in data.get("skip_categories") or []},
        "log_level": str(data.get("log_level", "INFO")).upper(),
        "store_backend": store.get("backend", "memory"),
        "store_path": store.get("path", DEFAULT_DB),
    }


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    import yaml  # optional dependency
    with open(path, encoding="utf-8") as f:
        return load_config(yaml.safe_load(f) or {})


def configure_logging(level: str = "INFO") -> None:
    """Root handler for the CLI and the sidecar; libraries just log."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_store(config: dict[str, Any]) -> DocumentStore:
    cfg = load_config(config) if "store_backend" not in config else config
    backend = cfg["store_backend"]
    if backend == "sqlite":
        return SqliteDocumentStore(db_path=cfg["store_path"])
    if backend == "memory":
        return MemoryDocumentStore()
    raise ValueError(f"Unknown store backend: {backend}")


def create_gate(
    config: dict[str, Any],
    transcriber: Transcriber | None = None,
    analyzer: Analyzer | None = None,
) -> PrivacyGate:
    """Create a fully configured gate from a config dict."""
    cfg = load_config(config) if "store_backend" not in config else config
    return PrivacyGate(
        create_store(cfg),
        transcriber,
        analyzer,
        patterns=get_patterns(cfg["skip_categories"]),
    )
