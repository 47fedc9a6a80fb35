"""
Token validation for access and identity tokens.
"""

import math
import time
from typing import Any, Callable, Dict, Iterable, Optional

import jwt
from pydantic import ValidationError as SchemaError

from shared.errors import (
    AudienceMismatchError,
    DisallowedAlgorithmError,
    InvalidSignatureError,
    IssuerMismatchError,
    MalformedTokenError,
    TokenExpiredError,
    TokenNotYetValidError,
    TokenUseMismatchError,
    TrustLayerError,
)
from shared.logging import get_logger
from shared.metrics import TrustMetrics
from ..jwks.cache import KeySetCache
from .claims import (
    ACCESS_TOKEN_USE,
    IDENTITY_TOKEN_USE,
    AccessClaims,
    IdentityClaims,
    claims_adapter,
)

DEFAULT_ALGORITHMS = ("RS256",)
DEFAULT_LEEWAY_SECONDS = 120.0

# The key set only yields RSA keys; anything else is a confusion vector.
RSA_ALGORITHMS = frozenset({"RS256", "RS384", "RS512", "PS256", "PS384", "PS512"})

# Signature only. Temporal and identity checks are done here so each failure
# maps to its own error and the leeway boundary is inclusive.
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
    "verify_aud": False,
    "verify_iss": False,
    "require": [],
}


class TokenValidator:
    """Verifies signed tokens and enforces claim-level trust rules.

    Holds no mutable state after construction; safe for concurrent use.
    """

    def __init__(
        self,
        key_set: KeySetCache,
        issuer: str,
        audience: Optional[str] = None,
        *,
        leeway: float = DEFAULT_LEEWAY_SECONDS,
        algorithms: Iterable[str] = DEFAULT_ALGORITHMS,
        clock: Callable[[], float] = time.time,
        metrics: Optional[TrustMetrics] = None,
    ):
        if not issuer:
            raise ValueError("issuer is required")
        if leeway < 0:
            raise ValueError("leeway must not be negative")

        allowed = tuple(algorithms)
        if not allowed:
            raise ValueError("at least one algorithm must be allowed")
        unsupported = [alg for alg in allowed if alg not in RSA_ALGORITHMS]
        if unsupported:
            raise ValueError(f"algorithms not usable with RSA key sets: {unsupported}")

        self.key_set = key_set
        self.issuer = issuer
        self.audience = audience or None
        self.leeway = leeway
        self.algorithms = allowed
        self.metrics = metrics or TrustMetrics()
        self.logger = get_logger("trust.validator")
        self._clock = clock

    async def validate_access(self, token: str) -> AccessClaims:
        """Validate an access token and return its claims."""
        return await self._validate(token, ACCESS_TOKEN_USE)

    async def validate_identity(self, token: str) -> IdentityClaims:
        """Validate an identity token and return its claims."""
        return await self._validate(token, IDENTITY_TOKEN_USE)

    async def _validate(self, token: str, expected_use: str):
        try:
            claims = await self._verify(token, expected_use)
        except TrustLayerError as exc:
            self.metrics.record_validation(expected_use, exc.code.lower())
            self.logger.warning(
                "Token rejected",
                token_use=expected_use,
                error_code=exc.code,
                error=exc.message,
            )
            raise

        self.metrics.record_validation(expected_use, "success")
        self.logger.debug("Token validated", token_use=expected_use, sub=claims.subject)
        return claims

    async def _verify(self, token: str, expected_use: str):
        token = self._strip_bearer(token)

        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as exc:
            raise MalformedTokenError("Token header could not be parsed") from exc

        algorithm = header.get("alg")
        if algorithm not in self.algorithms:
            raise DisallowedAlgorithmError(
                "Token signing algorithm is not allowed",
                details={"alg": algorithm, "allowed": list(self.algorithms)},
            )

        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise MalformedTokenError("Token header missing key id (kid)")

        public_key = await self.key_set.get(kid)
        payload = self._decode(token, public_key, algorithm)

        now = self._clock()
        self._check_issuer(payload)
        self._check_times(payload, now)
        self._check_token_use(payload, expected_use)
        self._check_audience(payload, expected_use)

        try:
            return claims_adapter.validate_python(payload)
        except SchemaError as exc:
            raise MalformedTokenError(
                "Token claims do not match the expected schema",
                details={"errors": exc.error_count()},
            ) from exc

    @staticmethod
    def _strip_bearer(token: str) -> str:
        if not isinstance(token, str):
            raise MalformedTokenError("Token must be a string")
        if token.startswith("Bearer "):
            token = token[7:]
        token = token.strip()
        if not token:
            raise MalformedTokenError("Token is empty")
        return token

    @staticmethod
    def _decode(token: str, public_key: Any, algorithm: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, public_key, algorithms=[algorithm], options=_DECODE_OPTIONS)
        except jwt.InvalidSignatureError as exc:
            raise InvalidSignatureError("Token signature verification failed") from exc
        except jwt.InvalidAlgorithmError as exc:
            raise DisallowedAlgorithmError("Token signing algorithm is not allowed") from exc
        except jwt.PyJWTError as exc:
            raise MalformedTokenError("Token could not be decoded", details={"error": str(exc)}) from exc

        if not isinstance(payload, dict):
            raise MalformedTokenError("Token payload is not an object")
        return payload

    def _check_issuer(self, payload: Dict[str, Any]) -> None:
        issuer = payload.get("iss")
        if issuer != self.issuer:
            raise IssuerMismatchError(
                "Token issuer does not match",
                details={"expected": self.issuer, "actual": issuer},
            )

    def _check_times(self, payload: Dict[str, Any], now: float) -> None:
        exp = payload.get("exp")
        if exp is None:
            raise MalformedTokenError("Token missing exp claim")
        exp = _numeric_date(exp, "exp")
        if now > exp + self.leeway:
            raise TokenExpiredError("Token has expired", details={"exp": exp})

        nbf = payload.get("nbf")
        if nbf is not None:
            nbf = _numeric_date(nbf, "nbf")
            if now + self.leeway < nbf:
                raise TokenNotYetValidError("Token is not yet valid", details={"nbf": nbf})

    @staticmethod
    def _check_token_use(payload: Dict[str, Any], expected_use: str) -> None:
        token_use = payload.get("token_use")
        if token_use != expected_use:
            raise TokenUseMismatchError(
                "Token use does not match",
                details={"expected": expected_use, "actual": token_use},
            )

    def _check_audience(self, payload: Dict[str, Any], expected_use: str) -> None:
        if self.audience is None:
            return

        if expected_use == ACCESS_TOKEN_USE:
            matches = payload.get("client_id") == self.audience
        else:
            aud = payload.get("aud")
            matches = aud == self.audience or aud == [self.audience]

        if not matches:
            raise AudienceMismatchError(
                "Token audience/client_id does not match",
                details={"expected": self.audience},
            )


def _numeric_date(value: Any, claim: str) -> float:
    """Return a time claim as a finite float or raise MalformedTokenError."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            seconds = float(value)
        except OverflowError:
            seconds = math.inf
        if math.isfinite(seconds):
            return seconds
    raise MalformedTokenError(f"Token {claim} claim is not a finite number", details={"claim": claim})
