"""
Key custodian capability interface.

The custodian exclusively holds master keys. Implementations forward every
operation to it and never reconstruct or store master key material locally.
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from shared.errors import MalformedDigestError


class SigningAlgorithm(str, Enum):
    """Asymmetric signing algorithms understood by the custodian."""

    RSASSA_PSS_SHA_256 = "RSASSA_PSS_SHA_256"
    RSASSA_PSS_SHA_384 = "RSASSA_PSS_SHA_384"
    RSASSA_PSS_SHA_512 = "RSASSA_PSS_SHA_512"
    RSASSA_PKCS1_V1_5_SHA_256 = "RSASSA_PKCS1_V1_5_SHA_256"
    RSASSA_PKCS1_V1_5_SHA_384 = "RSASSA_PKCS1_V1_5_SHA_384"
    RSASSA_PKCS1_V1_5_SHA_512 = "RSASSA_PKCS1_V1_5_SHA_512"
    ECDSA_SHA_256 = "ECDSA_SHA_256"
    ECDSA_SHA_384 = "ECDSA_SHA_384"
    ECDSA_SHA_512 = "ECDSA_SHA_512"

    @property
    def hash_name(self) -> str:
        return "sha" + self.value.rsplit("_", 1)[-1]

    @property
    def digest_size(self) -> int:
        return hashlib.new(self.hash_name).digest_size

    def digest(self, data: bytes) -> bytes:
        """Hash ``data`` with this algorithm's message digest."""
        return hashlib.new(self.hash_name, data).digest()

    def check_digest(self, digest: bytes) -> None:
        if not isinstance(digest, (bytes, bytearray)) or len(digest) != self.digest_size:
            raise MalformedDigestError(
                "Digest length does not match signing algorithm",
                details={"algorithm": self.value, "expected_bytes": self.digest_size},
            )


class DataKeySpec(str, Enum):
    AES_256 = "AES_256"
    AES_128 = "AES_128"


@dataclass(frozen=True)
class DataKey:
    """Ephemeral data-encryption key returned by the custodian.

    ``plaintext`` lives only in process memory for the requesting operation and
    is excluded from repr. ``ciphertext`` is the wrapped form, safe to persist.
    """

    plaintext: bytes = field(repr=False)
    ciphertext: bytes = field(repr=False)
    key_ref: str = ""


@dataclass(frozen=True)
class SignResult:
    """Signature plus the key id the custodian actually used.

    ``key_ref`` is the provider-resolved identifier (an ARN for KMS), not the
    alias that was requested. Signature records store this value.
    """

    signature: bytes = field(repr=False)
    key_ref: str


class KeyCustodianClient(ABC):
    """Remote key operations: decrypt, data-key generation, sign, verify.

    Sign and verify take a pre-computed digest, never raw content.
    Provider failures propagate unmodified.
    """

    @abstractmethod
    async def decrypt(self, ciphertext: bytes) -> bytes:
        """Unwrap ciphertext produced under the custodian's master key."""

    @abstractmethod
    async def generate_data_key(
        self,
        spec: DataKeySpec = DataKeySpec.AES_256,
        key_ref: Optional[str] = None,
    ) -> DataKey:
        """Return a fresh data key in plaintext and wrapped form."""

    @abstractmethod
    async def sign(self, key_ref: str, digest: bytes, algorithm: SigningAlgorithm) -> SignResult:
        """Sign ``digest`` with the asymmetric key ``key_ref``."""

    @abstractmethod
    async def verify(
        self,
        key_ref: str,
        digest: bytes,
        signature: bytes,
        algorithm: SigningAlgorithm,
    ) -> bool:
        """Check ``signature`` over ``digest`` with the asymmetric key ``key_ref``."""
