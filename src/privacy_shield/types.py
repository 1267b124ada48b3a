"""Core types."""

from __future__ import annotations
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MaskStrategy(str, Enum):
    FULL = "full"          # opaque lettered token, nothing of the value survives
    PARTIAL = "partial"    # trailing digits kept


class RedactionStatus(str, Enum):
    PENDING = "pending"
    AUTO_DETECTED = "auto_detected"
    USER_CONFIRMED = "user_confirmed"
    SKIPPED = "skipped"


class ProcessingStatus(str, Enum):
    UPLOADED = "uploaded"
    EXTRACTED = "extracted"
    PII_DETECTED = "pii_detected"
    REDACTION_CONFIRMED = "redaction_confirmed"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    ERROR = "error"


DECIDED = frozenset({RedactionStatus.USER_CONFIRMED, RedactionStatus.SKIPPED})


@dataclass(frozen=True, slots=True)
class PIIPattern:
    """One category of sensitive value and how to mask it."""
    category: str          # e.g. "BANK_ACCOUNT"
    regex: re.Pattern
    label: str             # e.g. "ACCOUNT"
    strategy: MaskStrategy
    reveal: int = 0        # trailing digits kept (partial only)
    template: str = ""     # partial mask layout, "{suffix}" is the kept digits

    def full_mask(self, letter: str) -> str:
        return f"[{self.label} {letter}]"

    def partial_mask(self, original: str) -> str:
        digits = re.sub(r"\D", "", original)
        return self.template.format(suffix=digits[-self.reveal:])


@dataclass(frozen=True, slots=True)
class Finding:
    """A single detected PII occurrence in one text snapshot."""
    category: str
    start: int
    end: int
    text: str
    mask: str
    confirmed: bool = True

    def with_confirmed(self, confirmed: bool) -> Finding:
        return replace(self, confirmed=confirmed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "mask": self.mask,
            "confirmed": self.confirmed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Finding:
        return cls(
            category=data["category"],
            start=int(data["start"]),
            end=int(data["end"]),
            text=data["text"],
            mask=data["mask"],
            confirmed=bool(data.get("confirmed", True)),
        )


@dataclass(frozen=True, slots=True)
class RedactionResult:
    """Result of applying confirmed findings to a text."""
    masked_text: str
    mask_map: dict[str, str] = field(default_factory=dict)  # mask → original


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    """Structured output of the analysis collaborator."""
    document_type: str = "other"
    summary: str = ""
    concerns: list[str] = field(default_factory=list)
    deadlines: list[str] = field(default_factory=list)
    urgency: str = "low"
    recommended_action: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_type": self.document_type,
            "summary": self.summary,
            "concerns": list(self.concerns),
            "deadlines": list(self.deadlines),
            "urgency": self.urgency,
            "recommended_action": self.recommended_action,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisResult:
        """Build from decoded JSON. Raises TypeError on wrong-typed fields."""
        return cls(
            document_type=_text_field(data, "document_type", "other"),
            summary=_text_field(data, "summary", ""),
            concerns=_list_field(data, "concerns"),
            deadlines=_list_field(data, "deadlines"),
            urgency=_text_field(data, "urgency", "low"),
            recommended_action=_text_field(data, "recommended_action", None),
        )


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """Verbatim masked output received from the analysis collaborator."""
    masked_output: str
    recorded_at: str = field(default_factory=lambda: _now())

    def to_dict(self) -> dict[str, Any]:
        return {"masked_output": self.masked_output, "recorded_at": self.recorded_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditRecord:
        return cls(masked_output=data["masked_output"], recorded_at=data["recorded_at"])


@dataclass(slots=True)
class Document:
    """Persisted state of one document moving through the privacy gate."""
    id: str
    media_type: str = "application/pdf"
    extracted_text: str | None = None
    findings: list[Finding] = field(default_factory=list)
    redaction_status: RedactionStatus = RedactionStatus.PENDING
    masked_text: str | None = None
    mask_map: dict[str, str] = field(default_factory=dict)
    processing_status: ProcessingStatus = ProcessingStatus.UPLOADED
    restored_analysis_output: AnalysisResult | None = None
    analysis_audit: list[AuditRecord] = field(default_factory=list)  # append-only
    needs_attention: bool = False
    created_at: str = field(default_factory=lambda: _now())
    updated_at: str = field(default_factory=lambda: _now())

    @property
    def masked_analysis_output(self) -> str | None:
        """Latest masked output, kept even after un-redaction."""
        if not self.analysis_audit:
            return None
        return self.analysis_audit[-1].masked_output

    def touch(self) -> None:
        self.updated_at = _now()

    def to_dict(self) -> dict[str, Any]:
        restored = self.restored_analysis_output
        return {
            "id": self.id,
            "media_type": self.media_type,
            "extracted_text": self.extracted_text,
            "findings": [f.to_dict() for f in self.findings],
            "redaction_status": self.redaction_status.value,
            "masked_text": self.masked_text,
            "mask_map": dict(self.mask_map),
            "processing_status": self.processing_status.value,
            "restored_analysis_output": restored.to_dict() if restored else None,
            "analysis_audit": [a.to_dict() for a in self.analysis_audit],
            "needs_attention": self.needs_attention,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        restored = data.get("restored_analysis_output")
        return cls(
            id=data["id"],
            media_type=data.get("media_type", "application/pdf"),
            extracted_text=data.get("extracted_text"),
            findings=[Finding.from_dict(f) for f in data.get("findings", [])],
            redaction_status=RedactionStatus(data.get("redaction_status", "pending")),
            masked_text=data.get("masked_text"),
            mask_map=dict(data.get("mask_map") or {}),
            processing_status=ProcessingStatus(data.get("processing_status", "uploaded")),
            restored_analysis_output=AnalysisResult.from_dict(restored) if restored else None,
            analysis_audit=[AuditRecord.from_dict(a) for a in data.get("analysis_audit", [])],
            needs_attention=bool(data.get("needs_attention", False)),
            created_at=data.get("created_at") or _now(),
            updated_at=data.get("updated_at") or _now(),
        )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _text_field(data: dict[str, Any], key: str, default: str | None) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _list_field(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise TypeError(f"{key} must be a list of strings")
    return list(value)
