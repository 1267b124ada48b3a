"""Document store — persisted gate state, one record per document.

Design goals:
  - Isolated: get() returns a copy, callers change nothing until save()
  - Conditional status change: compare_and_set_status() serializes entry
    into "analyzing"; save(expected_status=...) refuses to overwrite a
    document whose status moved since it was read
"""

from __future__ import annotations
import copy
import threading
from typing import Iterable, Protocol

from .errors import ConflictState, DocumentNotFound
from .types import Document, ProcessingStatus


class DocumentStore(Protocol):
    def create(self, document: Document) -> None: ...
    def get(self, document_id: str) -> Document: ...
    def save(
        self,
        document: Document,
        expected_status: ProcessingStatus | None = None,
    ) -> None: ...
    def compare_and_set_status(
        self,
        document_id: str,
        expected: Iterable[ProcessingStatus],
        new: ProcessingStatus,
    ) -> bool: ...


class MemoryDocumentStore:
    """In-process store, for tests and single-process use."""

    __slots__ = ("_docs", "_lock")

    def __init__(self) -> None:
        self._docs: dict[str, Document] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def create(self, document: Document) -> None:
        with self._lock:
            if document.id in self._docs:
                raise ValueError(f"Document {document.id} already exists")
            self._docs[document.id] = copy.deepcopy(document)

    def get(self, document_id: str) -> Document:
        with self._lock:
            try:
                return copy.deepcopy(self._docs[document_id])
            except KeyError:
                raise DocumentNotFound(
                    f"Document {document_id} not found", document_id=document_id
                ) from None

    def save(
        self,
        document: Document,
        expected_status: ProcessingStatus | None = None,
    ) -> None:
        """Replace the stored document.

        With `expected_status`, the write only happens if the stored
        document still has that processing status; otherwise ConflictState.
        """
        with self._lock:
            current = self._docs.get(document.id)
            if current is None:
                raise DocumentNotFound(
                    f"Document {document.id} not found", document_id=document.id
                )
            if expected_status is not None and current.processing_status is not expected_status:
                raise ConflictState(
                    f"Document changed to {current.processing_status.value} concurrently",
                    document_id=document.id,
                )
            document.touch()
            self._docs[document.id] = copy.deepcopy(document)

    def compare_and_set_status(
        self,
        document_id: str,
        expected: Iterable[ProcessingStatus],
        new: ProcessingStatus,
    ) -> bool:
        """Set processing_status to `new` only if it is currently one of `expected`."""
        allowed = set(expected)
        with self._lock:
            doc = self._docs.get(document_id)
            if doc is None:
                raise DocumentNotFound(
                    f"Document {document_id} not found", document_id=document_id
                )
            if doc.processing_status not in allowed:
                return False
            doc.processing_status = new
            doc.touch()
            return True

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._docs)

    def list_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._docs)
