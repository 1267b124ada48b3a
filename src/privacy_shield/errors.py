"""Error kinds raised by the privacy gate.

Messages are safe to log and to show: they name a category and a
document id, never document text, masks or upstream error bodies.
"""

from __future__ import annotations


class PrivacyShieldError(Exception):
    category = "PRIVACY_SHIELD"

    def __init__(self, message: str, *, document_id: str | None = None) -> None:
        super().__init__(message)
        self.document_id = document_id


class GateViolation(PrivacyShieldError):
    """Analysis requested before a redaction decision was made."""
    category = "GATE_VIOLATION"


class ConflictState(PrivacyShieldError):
    """Operation not allowed in the document's current processing status."""
    category = "CONFLICT"


class UpstreamFailure(PrivacyShieldError):
    """Transcription or analysis collaborator failed."""
    category = "UPSTREAM_FAILURE"


class MalformedOutput(PrivacyShieldError):
    """Analysis output could not be parsed as the expected JSON object."""
    category = "MALFORMED_OUTPUT"


class DocumentNotFound(PrivacyShieldError, KeyError):
    category = "NOT_FOUND"

    def __str__(self) -> str:
        # KeyError would repr() the message
        return self.args[0] if self.args else ""


class NotConfigured(PrivacyShieldError):
    """The gate has no transcriber or analyzer for the requested step."""
    category = "NOT_CONFIGURED"
