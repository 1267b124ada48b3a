"""Privacy gate — sequences detection, review, redaction and analysis.

Usage:
    gate = PrivacyGate(MemoryDocumentStore(), transcriber, analyzer)

    doc = gate.create_document("application/pdf")
    gate.extract(doc.id, pdf_bytes)          # → pii_detected, findings attached
    gate.toggle_confirmed(doc.id, 2)         # reviewer keeps finding #2 unmasked
    gate.confirm_redaction(doc.id)           # → redaction_confirmed
    analysis = gate.analyze(doc.id)          # masked text out, restored result back

Status flow:
    uploaded → extracted → pii_detected → redaction_confirmed → analyzing → analyzed
                                                                         ↘ error ↺

The analyzer is never called unless the document's redaction status is
user_confirmed or skipped, and entry into "analyzing" is a conditional
check-and-set on the store, so only one caller at a time can start it.
Every other write names the status it read the document in, and the store
rejects it with ConflictState if that status has moved on since.
"""

from __future__ import annotations
import logging
import uuid
from typing import Iterable

from .analysis import Analyzer, Transcriber, parse_analysis_output
from .detector import detect
from .errors import (
    ConflictState,
    GateViolation,
    MalformedOutput,
    NotConfigured,
    PrivacyShieldError,
    UpstreamFailure,
)
from .patterns import get_patterns
from .redactor import redact
from .store import DocumentStore
from .types import (
    DECIDED,
    AuditRecord,
    AnalysisResult,
    Document,
    Finding,
    PIIPattern,
    ProcessingStatus,
    RedactionResult,
    RedactionStatus,
)
from .unredact import unredact

logger = logging.getLogger(__name__)

# Statuses from which analysis may start; "error" is the retry path.
_ANALYZABLE = frozenset({ProcessingStatus.REDACTION_CONFIRMED, ProcessingStatus.ERROR})

# A fresh detection pass is the only way back to review after a decision.
_REDETECTABLE = frozenset({
    ProcessingStatus.PII_DETECTED,
    ProcessingStatus.REDACTION_CONFIRMED,
    ProcessingStatus.ANALYZED,
    ProcessingStatus.ERROR,
})


class PrivacyGate:
    """State machine over one store; safe to share between threads."""

    def __init__(
        self,
        store: DocumentStore,
        transcriber: Transcriber | None = None,
        analyzer: Analyzer | None = None,
        *,
        patterns: Iterable[PIIPattern] | None = None,
    ) -> None:
        self.store = store
        self.transcriber = transcriber
        self.analyzer = analyzer
        self.patterns = tuple(patterns) if patterns is not None else get_patterns()

    # ------------------------------------------------------------------
    # uploaded → extracted → pii_detected
    # ------------------------------------------------------------------

    def create_document(self, media_type: str, document_id: str | None = None) -> Document:
        doc = Document(id=document_id or uuid.uuid4().hex, media_type=media_type)
        self.store.create(doc)
        return doc

    def extract(self, document_id: str, data: bytes) -> Document:
        """Transcribe the raw upload and run detection on the result.

        A transcription failure leaves the document in "uploaded".
        """
        doc = self.store.get(document_id)
        _require(doc, ProcessingStatus.UPLOADED, "extract")
        if self.transcriber is None:
            raise NotConfigured("No transcriber configured", document_id=document_id)

        try:
            text = self.transcriber.transcribe(data, doc.media_type)
        except Exception as exc:
            logger.error("[DETECT_PII] transcription failed document=%s error=%s",
                         document_id, type(exc).__name__)
            raise UpstreamFailure("Text extraction failed", document_id=document_id) from exc

        doc.extracted_text = text
        doc.processing_status = ProcessingStatus.EXTRACTED
        self._run_detection(doc)
        self.store.save(doc, expected_status=ProcessingStatus.UPLOADED)
        return doc

    def redetect(self, document_id: str) -> Document:
        """Fresh detection pass over the same extracted text.

        Discards findings and the redaction decision; the analysis audit
        trail is kept.
        """
        doc = self.store.get(document_id)
        previous = doc.processing_status
        if previous not in _REDETECTABLE:
            raise ConflictState(
                f"Cannot re-run detection while document is {doc.processing_status.value}",
                document_id=document_id,
            )
        doc.masked_text = None
        doc.mask_map = {}
        doc.restored_analysis_output = None
        doc.needs_attention = False
        self._run_detection(doc)
        self.store.save(doc, expected_status=previous)
        return doc

    def _run_detection(self, doc: Document) -> None:
        findings = detect(doc.extracted_text or "", self.patterns)
        doc.findings = findings
        doc.redaction_status = (
            RedactionStatus.AUTO_DETECTED if findings else RedactionStatus.PENDING
        )
        doc.processing_status = ProcessingStatus.PII_DETECTED
        logger.info("[DETECT_PII] document=%s findings=%d", doc.id, len(findings))

    # ------------------------------------------------------------------
    # Review surface: pii_detected → redaction_confirmed
    # ------------------------------------------------------------------

    def review(self, document_id: str) -> tuple[Finding, ...]:
        return tuple(self.store.get(document_id).findings)

    def toggle_confirmed(self, document_id: str, index: int) -> Finding:
        """Flip one finding's confirmed flag; returns the updated finding."""
        doc = self.store.get(document_id)
        _require(doc, ProcessingStatus.PII_DETECTED, "change findings")
        if not 0 <= index < len(doc.findings):
            raise IndexError(f"No finding at index {index}")
        finding = doc.findings[index]
        doc.findings[index] = finding.with_confirmed(not finding.confirmed)
        self.store.save(doc, expected_status=ProcessingStatus.PII_DETECTED)
        return doc.findings[index]

    def confirm_redaction(
        self,
        document_id: str,
        selected: Iterable[int] | None = None,
    ) -> RedactionResult:
        """Apply the confirmed findings ("confirm selected").

        If `selected` is given, exactly those finding indices are confirmed
        and all others rejected; otherwise the current flags are used.
        """
        doc = self.store.get(document_id)
        _require(doc, ProcessingStatus.PII_DETECTED, "confirm redaction")

        if selected is not None:
            chosen = set(selected)
            out_of_range = [i for i in chosen if not 0 <= i < len(doc.findings)]
            if out_of_range:
                raise IndexError(f"No finding at index {min(out_of_range)}")
            doc.findings = [f.with_confirmed(i in chosen) for i, f in enumerate(doc.findings)]

        result = redact(doc.extracted_text or "", doc.findings)
        doc.masked_text = result.masked_text
        doc.mask_map = dict(result.mask_map)
        doc.redaction_status = RedactionStatus.USER_CONFIRMED
        doc.processing_status = ProcessingStatus.REDACTION_CONFIRMED
        self.store.save(doc, expected_status=ProcessingStatus.PII_DETECTED)

        logger.info("[CONFIRM_REDACTION] document=%s confirmed=%d of %d",
                    document_id, sum(f.confirmed for f in doc.findings), len(doc.findings))
        return result

    def skip_redaction(self, document_id: str) -> Document:
        """Proceed with the extracted text unchanged ("skip entirely")."""
        doc = self.store.get(document_id)
        _require(doc, ProcessingStatus.PII_DETECTED, "skip redaction")
        doc.masked_text = None
        doc.mask_map = {}
        doc.redaction_status = RedactionStatus.SKIPPED
        doc.processing_status = ProcessingStatus.REDACTION_CONFIRMED
        self.store.save(doc, expected_status=ProcessingStatus.PII_DETECTED)
        logger.warning("[CONFIRM_REDACTION] redaction skipped document=%s", document_id)
        return doc

    # ------------------------------------------------------------------
    # redaction_confirmed → analyzing → analyzed | error
    # ------------------------------------------------------------------

    @staticmethod
    def text_for_analysis(doc: Document) -> str:
        """The only text ever handed to the analyzer."""
        if doc.redaction_status is RedactionStatus.USER_CONFIRMED:
            text = doc.masked_text
        elif doc.redaction_status is RedactionStatus.SKIPPED:
            text = doc.extracted_text
        else:
            raise GateViolation(
                "Document must pass privacy review before analysis",
                document_id=doc.id,
            )
        if not text:
            raise GateViolation("No document text available for analysis", document_id=doc.id)
        return text

    def analyze(self, document_id: str) -> AnalysisResult:
        """Send the gate-approved text out and restore the result.

        Also the retry path from "error": detection and review are not repeated.
        """
        doc = self.store.get(document_id)
        if doc.redaction_status not in DECIDED:
            logger.warning("[DOC_ANALYZE] gate violation document=%s redaction_status=%s",
                           document_id, doc.redaction_status.value)
            raise GateViolation(
                "Document must pass privacy review before analysis",
                document_id=document_id,
            )
        if self.analyzer is None:
            raise NotConfigured("No analyzer configured", document_id=document_id)

        if not self.store.compare_and_set_status(
            document_id, _ANALYZABLE, ProcessingStatus.ANALYZING
        ):
            current = self.store.get(document_id).processing_status
            logger.info("[DOC_ANALYZE] conflict document=%s status=%s", document_id, current.value)
            raise ConflictState(
                f"Cannot start analysis while document is {current.value}",
                document_id=document_id,
            )

        # Reload: the decision may have changed between the first read and the check-and-set
        doc = self.store.get(document_id)
        try:
            return self._complete_analysis(doc)
        except Exception as exc:
            # Never leave the document in "analyzing": error is the retry path
            doc.processing_status = ProcessingStatus.ERROR
            if not isinstance(exc, (GateViolation, UpstreamFailure)):
                doc.needs_attention = True
            if not isinstance(exc, PrivacyShieldError):
                logger.error("[DOC_ANALYZE] analysis aborted document=%s error=%s",
                             document_id, type(exc).__name__)
            elif exc.document_id is None:
                exc.document_id = document_id
            self.store.save(doc, expected_status=ProcessingStatus.ANALYZING)
            raise

    def _complete_analysis(self, doc: Document) -> AnalysisResult:
        """Runs while the document is claimed in "analyzing"."""
        text = self.text_for_analysis(doc)

        try:
            raw = self.analyzer.analyze(text)
        except Exception as exc:
            logger.error("[DOC_ANALYZE] analysis failed document=%s error=%s",
                         doc.id, type(exc).__name__)
            raise UpstreamFailure("Analysis service failed", document_id=doc.id) from exc

        # Persist the audit record before anything can fail on its content
        doc.analysis_audit.append(
            AuditRecord(masked_output=raw if isinstance(raw, str) else str(raw))
        )
        self.store.save(doc, expected_status=ProcessingStatus.ANALYZING)

        try:
            masked_result = parse_analysis_output(raw)
        except MalformedOutput:
            logger.warning("[DOC_ANALYZE] malformed analysis output document=%s", doc.id)
            raise

        try:
            restored = parse_analysis_output(unredact(raw, doc.mask_map))
            doc.needs_attention = False
        except MalformedOutput:
            logger.warning("[DOC_ANALYZE] restored output unparseable, keeping masked "
                           "analysis document=%s", doc.id)
            restored = masked_result
            doc.needs_attention = True

        doc.restored_analysis_output = restored
        doc.processing_status = ProcessingStatus.ANALYZED
        self.store.save(doc, expected_status=ProcessingStatus.ANALYZING)
        logger.info("[DOC_ANALYZE] document=%s analyzed needs_attention=%s",
                    doc.id, doc.needs_attention)
        return restored


def _require(doc: Document, status: ProcessingStatus, action: str) -> None:
    if doc.processing_status is not status:
        raise ConflictState(
            f"Cannot {action} while document is {doc.processing_status.value}",
            document_id=doc.id,
        )
