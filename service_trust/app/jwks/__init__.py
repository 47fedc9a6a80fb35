"""
Key-set package.

Retrieves and caches the JSON Web Key Set (JWKS) used to verify token
signatures. The cache is an explicitly constructed instance (URL and TTL
given at creation) that is injected into the token validator.

Key points:
- Only RSA entries with complete modulus/exponent material are used.
- The key map is rebuilt in full and swapped atomically on refresh.
- No retries; transport failures surface as retryable errors.
"""

from .cache import KeySetCache, PublicKeySet, decode_unsigned, parse_key_set

__all__ = [
    "KeySetCache",
    "PublicKeySet",
    "decode_unsigned",
    "parse_key_set",
]
