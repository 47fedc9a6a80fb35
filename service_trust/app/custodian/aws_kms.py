"""
AWS KMS key custodian.
"""

import asyncio
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from shared.logging import get_logger
from .base import DataKey, DataKeySpec, KeyCustodianClient, SignResult, SigningAlgorithm

INVALID_SIGNATURE_CODE = "KMSInvalidSignatureException"


def build_kms_client(
    region_name: Optional[str] = None,
    *,
    connect_timeout: float = 2.0,
    read_timeout: float = 5.0,
) -> Any:
    """Create a boto3 KMS client with bounded timeouts and no SDK retries."""
    config = Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"total_max_attempts": 1, "mode": "standard"},
    )
    return boto3.client("kms", region_name=region_name, config=config)


class AwsKmsCustodian(KeyCustodianClient):
    """KeyCustodianClient backed by AWS KMS.

    ``master_key_id`` is the symmetric key that wraps data keys. Signing keys
    are passed per call. boto3 is blocking, so each call runs in a worker
    thread; callers bound it with ``asyncio.wait_for``. Messages are always
    sent as digests.
    """

    def __init__(
        self,
        master_key_id: Optional[str] = None,
        *,
        client: Any = None,
        region_name: Optional[str] = None,
    ):
        self.master_key_id = master_key_id or None
        self._client = client or build_kms_client(region_name)
        self.logger = get_logger("trust.custodian.kms")

    async def decrypt(self, ciphertext: bytes) -> bytes:
        # The ciphertext blob names its own key.
        response = await asyncio.to_thread(self._client.decrypt, CiphertextBlob=ciphertext)
        return response["Plaintext"]

    async def generate_data_key(
        self,
        spec: DataKeySpec = DataKeySpec.AES_256,
        key_ref: Optional[str] = None,
    ) -> DataKey:
        key_ref = key_ref or self.master_key_id
        if not key_ref:
            raise ValueError("no master key configured for data-key generation")
        response = await asyncio.to_thread(
            self._client.generate_data_key,
            KeyId=key_ref,
            KeySpec=DataKeySpec(spec).value,
        )
        self.logger.debug("Data key generated", key_ref=key_ref, spec=DataKeySpec(spec).value)
        return DataKey(
            plaintext=response["Plaintext"],
            ciphertext=response["CiphertextBlob"],
            key_ref=response.get("KeyId", key_ref),
        )

    async def sign(self, key_ref: str, digest: bytes, algorithm: SigningAlgorithm) -> SignResult:
        algorithm = SigningAlgorithm(algorithm)
        algorithm.check_digest(digest)
        response = await asyncio.to_thread(
            self._client.sign,
            KeyId=key_ref,
            Message=bytes(digest),
            MessageType="DIGEST",
            SigningAlgorithm=algorithm.value,
        )
        resolved = response.get("KeyId") or key_ref
        self.logger.info("Digest signed", key_ref=key_ref, resolved_key_ref=resolved, algorithm=algorithm.value)
        return SignResult(signature=response["Signature"], key_ref=resolved)

    async def verify(
        self,
        key_ref: str,
        digest: bytes,
        signature: bytes,
        algorithm: SigningAlgorithm,
    ) -> bool:
        algorithm = SigningAlgorithm(algorithm)
        algorithm.check_digest(digest)
        try:
            response = await asyncio.to_thread(
                self._client.verify,
                KeyId=key_ref,
                Message=bytes(digest),
                MessageType="DIGEST",
                Signature=signature,
                SigningAlgorithm=algorithm.value,
            )
        except ClientError as exc:
            # KMS reports a bad signature as an error; it is the provider's "false".
            if exc.response.get("Error", {}).get("Code") == INVALID_SIGNATURE_CODE:
                return False
            raise
        return bool(response["SignatureValid"])
