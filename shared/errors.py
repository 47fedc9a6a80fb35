"""
Shared error handling for the Trust Layer.

Every failure is a distinct class with its own code. Callers at the outer
boundary may coalesce them into a single status, but nothing inside this
package collapses distinct causes.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = Field(default_factory=dict)


class TrustLayerError(Exception):
    """Base exception for Trust Layer components."""

    code = "TRUST_ERROR"
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, code: Optional[str] = None):
        self.code = code or self.code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            retryable=self.retryable,
            details=self.details,
        )


# Transient: remote side unavailable. Surfaced as retryable, never retried here.

class TransientError(TrustLayerError):
    """Network or upstream unavailability."""

    code = "TRANSIENT_ERROR"
    retryable = True


class KeySetUnavailableError(TransientError):
    """The key-set endpoint could not be reached or answered with an error status."""

    code = "KEYSET_UNAVAILABLE"


# Malformed input: fatal to the current operation.

class MalformedInputError(TrustLayerError):
    code = "MALFORMED_INPUT"


class MalformedKeySetError(MalformedInputError):
    code = "MALFORMED_KEYSET"


class MalformedTokenError(MalformedInputError):
    code = "MALFORMED_TOKEN"


class MalformedDocumentError(MalformedInputError):
    code = "MALFORMED_DOCUMENT"


class MalformedDigestError(MalformedInputError):
    code = "MALFORMED_DIGEST"


class UnsupportedCanonicalVersionError(MalformedInputError):
    code = "UNSUPPORTED_CANONICAL_VERSION"


# Security violations: always rejected.

class SecurityViolationError(TrustLayerError):
    code = "SECURITY_VIOLATION"


class DisallowedAlgorithmError(SecurityViolationError):
    code = "DISALLOWED_ALGORITHM"


class InvalidSignatureError(SecurityViolationError):
    code = "INVALID_SIGNATURE"


class IssuerMismatchError(SecurityViolationError):
    code = "ISSUER_MISMATCH"


class AudienceMismatchError(SecurityViolationError):
    code = "AUDIENCE_MISMATCH"


class TokenUseMismatchError(SecurityViolationError):
    code = "TOKEN_USE_MISMATCH"


class TokenExpiredError(SecurityViolationError):
    code = "TOKEN_EXPIRED"


class TokenNotYetValidError(SecurityViolationError):
    code = "TOKEN_NOT_YET_VALID"


class DigestMismatchError(SecurityViolationError):
    code = "DIGEST_MISMATCH"


class TamperedPayloadError(SecurityViolationError):
    code = "TAMPERED_PAYLOAD"


# Lookup: never defaulted to a fallback key.

class KeyNotFoundError(TrustLayerError):
    """Key identifier absent from the key set even after a refresh."""

    code = "KEY_NOT_FOUND"
