"""
Signing package.

Composes the canonicalizer and the key custodian: documents are reduced to
canonical bytes, digested, and the digest is signed remotely.
"""

from .orchestrator import SignatureRecord, SignedDocument, SigningOrchestrator

__all__ = [
    "SignatureRecord",
    "SignedDocument",
    "SigningOrchestrator",
]
