"""
Document signing and verification through the key custodian.
"""

import hmac
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.errors import DigestMismatchError
from shared.logging import get_logger
from shared.metrics import TrustMetrics
from ..canonical.canonicalizer import Canonicalizer, DocumentLike, serialize
from ..custodian.base import KeyCustodianClient, SigningAlgorithm


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SignatureRecord(BaseModel):
    """Everything needed to re-verify a signature later.

    Verification uses ``algorithm`` and ``canonical_version`` exactly as
    recorded here. ``key_ref`` is the key id resolved by the custodian at
    signing time.
    """

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    key_ref: str
    digest: bytes
    signature: bytes = Field(repr=False)
    algorithm: SigningAlgorithm
    canonical_version: str
    signed_at: datetime


class SignedDocument(BaseModel):
    """Canonical bytes stored alongside their signature record.

    The stored bytes are kept for audit. Verification rebuilds them from the
    logical fields instead.
    """

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    canonical: bytes = Field(repr=False)
    record: SignatureRecord


class SigningOrchestrator:
    """Canonicalize, digest and sign documents; verify them later."""

    def __init__(
        self,
        custodian: KeyCustodianClient,
        key_ref: str,
        algorithm: SigningAlgorithm = SigningAlgorithm.RSASSA_PSS_SHA_256,
        *,
        canonicalizer: Optional[Canonicalizer] = None,
        clock: Callable[[], datetime] = _utcnow,
        metrics: Optional[TrustMetrics] = None,
    ):
        if not key_ref:
            raise ValueError("key_ref is required")
        self.custodian = custodian
        self.key_ref = key_ref
        self.algorithm = SigningAlgorithm(algorithm)
        self.canonicalizer = canonicalizer or Canonicalizer()
        self.metrics = metrics or TrustMetrics()
        self.logger = get_logger("trust.signing")
        self._clock = clock

    async def sign(self, document: DocumentLike) -> SignatureRecord:
        """Sign the canonical form of ``document``."""
        return (await self.sign_document(document)).record

    async def sign_document(self, document: DocumentLike) -> SignedDocument:
        """Sign ``document`` and return the canonical bytes with the record."""
        canonical_model = self.canonicalizer.build(document)
        canonical = serialize(canonical_model)
        digest = self.algorithm.digest(canonical)

        try:
            result = await self.custodian.sign(self.key_ref, digest, self.algorithm)
        except Exception:
            self.metrics.record_signature("sign", "error")
            raise

        record = SignatureRecord(
            key_ref=result.key_ref,
            digest=digest,
            signature=result.signature,
            algorithm=self.algorithm,
            canonical_version=canonical_model.metadata.canonical_version,
            signed_at=self._clock(),
        )
        self.metrics.record_signature("sign", "success")
        self.logger.info(
            "Document signed",
            key_ref=record.key_ref,
            algorithm=self.algorithm.value,
            canonical_version=record.canonical_version,
            digest=digest.hex(),
        )
        return SignedDocument(canonical=canonical, record=record)

    async def verify(self, document: DocumentLike, record: SignatureRecord) -> bool:
        """Check ``document`` against ``record``.

        A digest mismatch returns False without contacting the custodian.
        Otherwise the custodian's answer is returned as-is and its errors
        propagate.
        """
        try:
            self.check_digest(document, record)
        except DigestMismatchError as exc:
            self.metrics.record_signature("verify", "digest_mismatch")
            self.logger.warning(
                "Document digest does not match signature record",
                key_ref=record.key_ref,
                **exc.details,
            )
            return False

        try:
            valid = await self.custodian.verify(record.key_ref, record.digest, record.signature, record.algorithm)
        except Exception:
            self.metrics.record_signature("verify", "error")
            raise

        self.metrics.record_signature("verify", "valid" if valid else "invalid")
        if not valid:
            self.logger.warning("Signature rejected by custodian", key_ref=record.key_ref)
        return valid

    def check_digest(self, document: DocumentLike, record: SignatureRecord) -> bytes:
        """Recompute the digest with the recorded rules; raise on mismatch."""
        canonical = self.canonicalizer.canonicalize(document, record.canonical_version)
        digest = record.algorithm.digest(canonical)
        if not hmac.compare_digest(digest, record.digest):
            raise DigestMismatchError(
                "Canonical digest does not match the signed digest",
                details={"expected": record.digest.hex(), "actual": digest.hex()},
            )
        return digest
