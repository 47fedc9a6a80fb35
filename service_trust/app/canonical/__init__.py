"""
Canonicalization package.

Logically identical documents always serialize to identical bytes,
regardless of attachment order or timestamp offsets.
"""

from .canonicalizer import Canonicalizer, normalize_timestamp, sha256_hex
from .models import (
    CANONICAL_VERSION,
    AttachmentInput,
    CanonicalAttachment,
    CanonicalDocument,
    CanonicalMetadata,
    DocumentInput,
)

__all__ = [
    "CANONICAL_VERSION",
    "AttachmentInput",
    "CanonicalAttachment",
    "CanonicalDocument",
    "CanonicalMetadata",
    "Canonicalizer",
    "DocumentInput",
    "normalize_timestamp",
    "sha256_hex",
]
