"""
Envelope encryption with custodian-issued data keys.

A fresh data key is requested per payload; its plaintext form is used once
for AES-GCM and then dropped. Only the wrapped key, nonce and ciphertext are
returned for persistence.
"""

import base64
import os
from dataclasses import dataclass
from typing import Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from shared.errors import MalformedInputError, TamperedPayloadError
from .base import DataKeySpec, KeyCustodianClient

ENVELOPE_VERSION = 1
ALG_AES_GCM = "AES-GCM"
NONCE_SIZE = 12


@dataclass(frozen=True)
class SealedPayload:
    """Persistable envelope: wrapped data key plus AES-GCM output."""

    wrapped_key: bytes
    nonce: bytes
    ciphertext: bytes
    version: int = ENVELOPE_VERSION
    alg: str = ALG_AES_GCM

    def to_dict(self) -> Dict[str, object]:
        return {
            "version": self.version,
            "alg": self.alg,
            "wrapped_key": base64.b64encode(self.wrapped_key).decode("ascii"),
            "nonce": base64.b64encode(self.nonce).decode("ascii"),
            "ciphertext": base64.b64encode(self.ciphertext).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "SealedPayload":
        try:
            version = int(data["version"])
            alg = str(data["alg"])
            wrapped_key = base64.b64decode(data["wrapped_key"], validate=True)
            nonce = base64.b64decode(data["nonce"], validate=True)
            ciphertext = base64.b64decode(data["ciphertext"], validate=True)
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedInputError("Sealed payload is malformed") from exc

        if version != ENVELOPE_VERSION or alg != ALG_AES_GCM:
            raise MalformedInputError(
                "Unsupported sealed payload format",
                details={"version": version, "alg": alg},
            )
        if len(nonce) != NONCE_SIZE:
            raise MalformedInputError("Sealed payload nonce has the wrong length")
        return cls(wrapped_key=wrapped_key, nonce=nonce, ciphertext=ciphertext)


async def seal(
    custodian: KeyCustodianClient,
    plaintext: bytes,
    *,
    associated_data: Optional[bytes] = None,
    spec: DataKeySpec = DataKeySpec.AES_256,
) -> SealedPayload:
    """Encrypt ``plaintext`` under a new data key wrapped by the custodian."""
    data_key = await custodian.generate_data_key(spec)
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(data_key.plaintext).encrypt(nonce, plaintext, associated_data)
    wrapped_key = data_key.ciphertext
    del data_key
    return SealedPayload(wrapped_key=wrapped_key, nonce=nonce, ciphertext=ciphertext)


async def open_sealed(
    custodian: KeyCustodianClient,
    sealed: SealedPayload,
    *,
    associated_data: Optional[bytes] = None,
) -> bytes:
    """Unwrap the data key through the custodian and decrypt the payload."""
    key = await custodian.decrypt(sealed.wrapped_key)
    try:
        return AESGCM(key).decrypt(sealed.nonce, sealed.ciphertext, associated_data)
    except InvalidTag as exc:
        raise TamperedPayloadError("Sealed payload failed authentication") from exc
    finally:
        del key
