"""
Canonical encoding of signed documents.

Rules (v1):
- Field order is fixed by the canonical models, never by map iteration
- Timestamps must carry a timezone; rendered in UTC, whole seconds, "Z" suffix
- Every text field (content, identifiers, signed_with, attachment keys and
  filenames) is NFC-normalized; canonical_version is matched exactly
- Attachments reduced to (sha256_hash, filename, key), sorted by
  (key, sha256_hash, filename)
- Compact UTF-8 JSON, no whitespace, no ASCII escaping
"""

import hashlib
import hmac
import json
import unicodedata
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Union

from pydantic import ValidationError as SchemaError

from shared.errors import MalformedDocumentError, UnsupportedCanonicalVersionError
from .models import (
    CANONICAL_VERSION,
    AttachmentInput,
    CanonicalAttachment,
    CanonicalDocument,
    CanonicalMetadata,
    DocumentInput,
)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

DocumentLike = Union[DocumentInput, Mapping[str, Any]]


def normalize_timestamp(value: datetime, field: str) -> str:
    """Render an aware datetime in UTC at one-second precision."""
    if value.tzinfo is None or value.utcoffset() is None:
        raise MalformedDocumentError(
            f"Timestamp '{field}' has no timezone",
            details={"field": field},
        )
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _nfc(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return unicodedata.normalize("NFC", text)


def _canonical_attachment(attachment: AttachmentInput) -> CanonicalAttachment:
    digest = attachment.sha256_hash
    if attachment.content is not None:
        computed = sha256_hex(attachment.content)
        if digest is not None and not hmac.compare_digest(digest, computed):
            raise MalformedDocumentError(
                "Attachment hash does not match its content",
                details={"key": attachment.key},
            )
        digest = computed
    return CanonicalAttachment(sha256_hash=digest, filename=_nfc(attachment.filename), key=_nfc(attachment.key))


def build_v1(document: DocumentInput) -> CanonicalDocument:
    attachments = sorted(
        (_canonical_attachment(item) for item in document.attachments),
        key=lambda item: (item.key, item.sha256_hash, item.filename),
    )
    metadata = CanonicalMetadata(
        appointment_id=_nfc(document.appointment_id),
        created_at=normalize_timestamp(document.created_at, "created_at"),
        doctor_id=_nfc(document.doctor_id),
        document_type=_nfc(document.document_type),
        note_id=_nfc(document.note_id),
        patient_id=_nfc(document.patient_id),
        signed_at=normalize_timestamp(document.signed_at, "signed_at"),
        signed_with=_nfc(document.signed_with),
        canonical_version=document.canonical_version,
    )
    return CanonicalDocument(content=_nfc(document.content), metadata=metadata, attachments=attachments)


def serialize(canonical: CanonicalDocument) -> bytes:
    return json.dumps(
        canonical.model_dump(),
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
    ).encode("utf-8")


CANONICAL_BUILDERS: Dict[str, Callable[[DocumentInput], CanonicalDocument]] = {
    CANONICAL_VERSION: build_v1,
}


class Canonicalizer:
    """Turns a logical document into deterministic bytes for hashing and signing."""

    def __init__(self, builders: Optional[Mapping[str, Callable[[DocumentInput], CanonicalDocument]]] = None):
        self._builders = dict(builders or CANONICAL_BUILDERS)

    def supports(self, version: str) -> bool:
        return version in self._builders

    def build(self, document: DocumentLike, version: Optional[str] = None) -> CanonicalDocument:
        """Build the canonical record.

        ``version`` selects the rules; it defaults to the document's own
        canonical_version. Verification passes the recorded version so the
        rules are never inferred from the stored document.
        """
        document = self._coerce(document)
        version = version or document.canonical_version
        builder = self._builders.get(version)
        if builder is None:
            raise UnsupportedCanonicalVersionError(
                f"Unsupported canonical version: {version}",
                details={"version": version, "supported": sorted(self._builders)},
            )
        return builder(document)

    def canonicalize(self, document: DocumentLike, version: Optional[str] = None) -> bytes:
        return serialize(self.build(document, version))

    @staticmethod
    def _coerce(document: DocumentLike) -> DocumentInput:
        if isinstance(document, DocumentInput):
            return document
        try:
            return DocumentInput.model_validate(document)
        except SchemaError as exc:
            raise MalformedDocumentError(
                "Document could not be parsed",
                details={"errors": exc.error_count()},
            ) from exc
