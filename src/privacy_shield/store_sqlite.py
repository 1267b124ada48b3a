"""Persistent document store backed by SQLite — survives process restarts.

Drop-in replacement for MemoryDocumentStore.

Usage:
    store = SqliteDocumentStore(db_path="~/.privacy-shield/documents.db")
    gate = PrivacyGate(store, transcriber, analyzer)
"""

from __future__ import annotations
import json
import sqlite3
import threading
from pathlib import Path
from typing import Iterable

from .errors import ConflictState, DocumentNotFound
from .types import Document, ProcessingStatus


_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    processing_status TEXT NOT NULL,
    redaction_status TEXT NOT NULL,
    body TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_documents_status
    ON documents(processing_status);
"""


class SqliteDocumentStore:
    """Persistent store; the document body is kept as JSON."""

    __slots__ = ("_db", "_lock")

    def __init__(self, *, db_path: str | Path = "documents.db") -> None:
        if str(db_path) != ":memory:":
            db_path = Path(db_path).expanduser()
            db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        self._db.executescript(_SCHEMA)
        self._lock = threading.Lock()

    def create(self, document: Document) -> None:
        with self._lock:
            try:
                self._db.execute(
                    "INSERT INTO documents (id, processing_status, redaction_status, body, updated_at)"
                    " VALUES (?, ?, ?, ?, ?)",
                    (
                        document.id,
                        document.processing_status.value,
                        document.redaction_status.value,
                        json.dumps(document.to_dict(), ensure_ascii=False),
                        document.updated_at,
                    ),
                )
            except sqlite3.IntegrityError:
                raise ValueError(f"Document {document.id} already exists") from None
            self._db.commit()

    def get(self, document_id: str) -> Document:
        with self._lock:
            row = self._db.execute(
                "SELECT body, processing_status FROM documents WHERE id = ?",
                (document_id,),
            ).fetchone()
        if row is None:
            raise DocumentNotFound(f"Document {document_id} not found", document_id=document_id)
        body, status = row
        data = json.loads(body)
        # the column is authoritative: compare_and_set_status only touches it
        data["processing_status"] = status
        return Document.from_dict(data)

    def save(
        self,
        document: Document,
        expected_status: ProcessingStatus | None = None,
    ) -> None:
        document.touch()
        sql = (
            "UPDATE documents SET processing_status = ?, redaction_status = ?,"
            " body = ?, updated_at = ? WHERE id = ?"
        )
        params = [
            document.processing_status.value,
            document.redaction_status.value,
            json.dumps(document.to_dict(), ensure_ascii=False),
            document.updated_at,
            document.id,
        ]
        if expected_status is not None:
            sql += " AND processing_status = ?"
            params.append(expected_status.value)

        with self._lock:
            cur = self._db.execute(sql, params)
            self._db.commit()
            if cur.rowcount:
                return
            row = self._db.execute(
                "SELECT processing_status FROM documents WHERE id = ?", (document.id,)
            ).fetchone()
        if row is None:
            raise DocumentNotFound(f"Document {document.id} not found", document_id=document.id)
        raise ConflictState(
            f"Document changed to {row[0]} concurrently", document_id=document.id
        )

    def compare_and_set_status(
        self,
        document_id: str,
        expected: Iterable[ProcessingStatus],
        new: ProcessingStatus,
    ) -> bool:
        allowed = [s.value for s in expected]
        if not allowed:
            return False
        placeholders = ", ".join("?" for _ in allowed)
        with self._lock:
            cur = self._db.execute(
                f"UPDATE documents SET processing_status = ? "
                f"WHERE id = ? AND processing_status IN ({placeholders})",
                (new.value, document_id, *allowed),
            )
            self._db.commit()
            if cur.rowcount:
                return True
            exists = self._db.execute(
                "SELECT 1 FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
        if exists is None:
            raise DocumentNotFound(f"Document {document_id} not found", document_id=document_id)
        return False

    def list_ids(self) -> list[str]:
        with self._lock:
            rows = self._db.execute("SELECT id FROM documents ORDER BY id").fetchall()
        return [r[0] for r in rows]

    def close(self) -> None:
        self._db.close()
