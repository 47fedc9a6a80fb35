"""
Key custodian package.

One capability interface (KeyCustodianClient) with the provider chosen at
construction time. AwsKmsCustodian is the concrete binding; envelope helpers
build on any implementation.
"""

from .aws_kms import AwsKmsCustodian, build_kms_client
from .base import DataKey, DataKeySpec, KeyCustodianClient, SignResult, SigningAlgorithm
from .envelope import SealedPayload, open_sealed, seal

__all__ = [
    "AwsKmsCustodian",
    "DataKey",
    "DataKeySpec",
    "KeyCustodianClient",
    "SealedPayload",
    "SignResult",
    "SigningAlgorithm",
    "build_kms_client",
    "open_sealed",
    "seal",
]
