"""
Document models for canonicalization.

Input models accept what callers have at hand. Canonical models fix the field
order of the serialized form; their declaration order is the wire order.
"""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CANONICAL_VERSION = "v1"

_SHA256_HEX = re.compile(r"^[0-9a-f]{64}$")


class AttachmentInput(BaseModel):
    """Attachment descriptor supplied at signing or re-verification time.

    ``content`` is hashed when present; a stored ``sha256_hash`` stands in for
    content that lives elsewhere.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    filename: str
    content: Optional[bytes] = Field(default=None, repr=False)
    sha256_hash: Optional[str] = None

    @field_validator("sha256_hash")
    @classmethod
    def _normalize_hash(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().lower()
        if not _SHA256_HEX.match(value):
            raise ValueError("sha256_hash must be 64 hex characters")
        return value

    @model_validator(mode="after")
    def _require_content_or_hash(self) -> "AttachmentInput":
        if self.content is None and self.sha256_hash is None:
            raise ValueError("attachment needs content or sha256_hash")
        return self


class DocumentInput(BaseModel):
    """Logical fields of a signed clinical note."""

    model_config = ConfigDict(frozen=True)

    note_id: str = Field(min_length=1)
    document_type: str = Field(min_length=1)
    doctor_id: str = Field(min_length=1)
    patient_id: str = Field(min_length=1)
    appointment_id: Optional[str] = None
    content: str
    created_at: datetime
    signed_at: datetime
    signed_with: str = Field(min_length=1)
    canonical_version: str = CANONICAL_VERSION
    attachments: List[AttachmentInput] = Field(default_factory=list)


class CanonicalAttachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    sha256_hash: str
    filename: str
    key: str


class CanonicalMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    appointment_id: Optional[str]
    created_at: str
    doctor_id: str
    document_type: str
    note_id: str
    patient_id: str
    signed_at: str
    signed_with: str
    canonical_version: str


class CanonicalDocument(BaseModel):
    """Structured record whose serialization is signed."""

    model_config = ConfigDict(frozen=True)

    content: str
    metadata: CanonicalMetadata
    attachments: List[CanonicalAttachment]
