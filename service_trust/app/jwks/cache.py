"""
Key-set cache for token signature verification.
"""

import base64
import binascii
import json
import re
import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

import httpx
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey, RSAPublicNumbers

from shared.errors import KeyNotFoundError, KeySetUnavailableError, MalformedKeySetError
from shared.logging import get_logger
from shared.metrics import TrustMetrics

DEFAULT_TTL_SECONDS = 600.0
DEFAULT_HTTP_TIMEOUT = 5.0
EXPECTED_KEY_TYPE = "RSA"
_BASE64URL = re.compile(r"[A-Za-z0-9_-]+")


@dataclass(frozen=True)
class PublicKeySet:
    """Immutable snapshot of the published keys."""

    keys: Mapping[str, RSAPublicKey]
    expires_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at

    def __contains__(self, kid: str) -> bool:
        return kid in self.keys


def decode_unsigned(value: str) -> int:
    """Decode a base64url unsigned big-endian integer.

    The byte length of the encoded value sets the integer width; no fixed-size
    interpretation is applied. Only the unpadded URL-safe alphabet is accepted.
    """
    if not isinstance(value, str) or not value:
        raise ValueError("empty integer encoding")
    if not _BASE64URL.fullmatch(value):
        raise ValueError("integer encoding is not unpadded base64url")
    padded = value + "=" * (-len(value) % 4)
    raw = base64.b64decode(padded, altchars=b"-_", validate=True)
    if not raw:
        raise ValueError("empty integer encoding")
    return int.from_bytes(raw, "big")


def parse_key_set(document: Any, logger=None) -> Dict[str, RSAPublicKey]:
    """Build a kid -> public key map from a JWKS document.

    Entries of another key type or with missing/invalid material are skipped.
    Raises MalformedKeySetError only when the document itself is unusable.
    """
    if not isinstance(document, dict) or not isinstance(document.get("keys"), list):
        raise MalformedKeySetError("Key-set document missing 'keys' array")

    keys: Dict[str, RSAPublicKey] = {}
    for index, entry in enumerate(document["keys"]):
        if not isinstance(entry, dict) or entry.get("kty") != EXPECTED_KEY_TYPE:
            continue

        kid = entry.get("kid")
        n = entry.get("n")
        e = entry.get("e")
        if not isinstance(kid, str) or not kid or not n or not e:
            continue

        if kid in keys:
            if logger:
                logger.warning("Duplicate kid in key set, keeping first entry", kid=kid, index=index)
            continue

        try:
            public_key = RSAPublicNumbers(e=decode_unsigned(e), n=decode_unsigned(n)).public_key()
        except (ValueError, TypeError, binascii.Error) as exc:
            if logger:
                logger.warning("Skipping malformed key-set entry", kid=kid, index=index, error=str(exc))
            continue

        keys[kid] = public_key

    return keys


class KeySetCache:
    """Fetches, parses and time-bounds a remote public key set.

    The key map is an immutable snapshot. Readers take the lock only to read
    the current reference and a refresh takes it only to swap in a fully built
    replacement, so the network fetch is never inside the critical section.
    Concurrent misses may fetch redundantly.
    """

    def __init__(
        self,
        jwks_url: str,
        ttl: float = DEFAULT_TTL_SECONDS,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        http_timeout: float = DEFAULT_HTTP_TIMEOUT,
        clock: Callable[[], float] = time.time,
        metrics: Optional[TrustMetrics] = None,
    ) -> None:
        if not jwks_url:
            raise ValueError("jwks_url is required")
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        self.jwks_url = jwks_url
        self.ttl = ttl
        self.logger = get_logger("trust.jwks")
        self.metrics = metrics or TrustMetrics()
        self._clock = clock
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=http_timeout)

        self._lock = threading.Lock()
        self._snapshot = PublicKeySet(keys=MappingProxyType({}), expires_at=0.0, ttl=ttl)

    @classmethod
    def from_issuer(cls, issuer: str, ttl: float = DEFAULT_TTL_SECONDS, **kwargs) -> "KeySetCache":
        """Create a cache for the issuer's well-known JWKS location."""
        return cls(f"{issuer.rstrip('/')}/.well-known/jwks.json", ttl, **kwargs)

    @property
    def snapshot(self) -> PublicKeySet:
        with self._lock:
            return self._snapshot

    async def get(self, kid: str) -> RSAPublicKey:
        """Resolve ``kid`` to a public key, refreshing the set when needed."""
        current = self.snapshot
        if current.is_fresh(self._clock()) and kid in current:
            return current.keys[kid]

        refreshed = await self.refresh()
        public_key = refreshed.keys.get(kid)
        if public_key is None:
            self.logger.warning("Key not found after refresh", kid=kid, keys_count=len(refreshed.keys))
            raise KeyNotFoundError(f"Key not found: {kid}", details={"kid": kid})
        return public_key

    async def refresh(self) -> PublicKeySet:
        """Fetch the key set and atomically replace the current snapshot."""
        try:
            with self.metrics.time_keyset_fetch():
                document = await self._fetch()
            keys = parse_key_set(document, self.logger)
        except Exception:
            self.metrics.record_refresh("error")
            raise

        replacement = PublicKeySet(
            keys=MappingProxyType(keys),
            expires_at=self._clock() + self.ttl,
            ttl=self.ttl,
        )
        with self._lock:
            self._snapshot = replacement

        self.metrics.record_refresh("success")
        self.logger.info("Key set refreshed", keys_count=len(keys), jwks_url=self.jwks_url)
        return replacement

    async def _fetch(self) -> Any:
        try:
            response = await self._client.get(self.jwks_url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self.logger.error("Key-set endpoint returned error status", status_code=exc.response.status_code)
            raise KeySetUnavailableError(
                "Key-set endpoint returned an error status",
                details={"status_code": exc.response.status_code, "jwks_url": self.jwks_url},
            ) from exc
        except httpx.HTTPError as exc:
            self.logger.error("Failed to fetch key set", error=str(exc))
            raise KeySetUnavailableError(
                "Key-set endpoint unreachable",
                details={"error": str(exc), "jwks_url": self.jwks_url},
            ) from exc

        try:
            return json.loads(response.content)
        except ValueError as exc:
            raise MalformedKeySetError("Key-set document is not valid JSON") from exc

    async def close(self) -> None:
        """Close the HTTP client when this cache created it."""
        if self._owns_client:
            await self._client.aclose()
