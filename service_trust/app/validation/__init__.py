"""
Token validation package.

Validates tokens issued by the upstream identity provider against the
published key set:

- Rejects algorithms outside a fixed RSA allow-list before any key lookup.
- Verifies the signature, issuer, expiry/not-before (with leeway), token use
  and audience, each with its own error.
- Decodes the payload into AccessClaims or IdentityClaims by token use.
"""

from .claims import AccessClaims, IdentityClaims, RegisteredClaims
from .token_validator import TokenValidator

__all__ = [
    "AccessClaims",
    "IdentityClaims",
    "RegisteredClaims",
    "TokenValidator",
]
