"""Privacy Shield — reversible masking of Norwegian PII before document analysis."""

from .detector import detect, resolve_overlaps
from .redactor import redact
from .unredact import unredact
from .gate import PrivacyGate
from .store import MemoryDocumentStore
from .store_sqlite import SqliteDocumentStore
from .analysis import PlainTextTranscriber, parse_analysis_output
from .config import create_gate, load_config, load_from_yaml
from .errors import (
    PrivacyShieldError, GateViolation, ConflictState,
    UpstreamFailure, MalformedOutput, DocumentNotFound, NotConfigured,
)
from .types import (
    Finding, RedactionResult, AnalysisResult, Document,
    RedactionStatus, ProcessingStatus, MaskStrategy, PIIPattern,
)

__all__ = [
    "detect", "resolve_overlaps", "redact", "unredact",
    "PrivacyGate",
    "MemoryDocumentStore", "SqliteDocumentStore",
    "PlainTextTranscriber", "parse_analysis_output",
    "create_gate", "load_config", "load_from_yaml",
    "PrivacyShieldError", "GateViolation", "ConflictState",
    "UpstreamFailure", "MalformedOutput", "DocumentNotFound", "NotConfigured",
    "Finding", "RedactionResult", "AnalysisResult", "Document",
    "RedactionStatus", "ProcessingStatus", "MaskStrategy", "PIIPattern",
]
__version__ = "0.1.0"
