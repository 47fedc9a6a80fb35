"""
Shared configuration management for the Trust Layer.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrustSettings(BaseSettings):
    """Settings for token validation and document signing.

    Values are read from ``TRUST_*`` environment variables or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="TRUST_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Token validation
    issuer: str = "http://localhost:8080/realms/trust"
    audience: Optional[str] = None
    jwks_url: Optional[str] = None
    jwks_ttl_seconds: float = Field(default=600.0, gt=0)
    leeway_seconds: float = Field(default=120.0, ge=0)
    http_timeout_seconds: float = Field(default=5.0, gt=0)
    allowed_algorithms: List[str] = Field(default_factory=lambda: ["RS256"])

    # Key custodian. The master key wraps data keys (ENCRYPT_DECRYPT); the
    # signing key is asymmetric (SIGN_VERIFY). KMS keys cannot serve both.
    kms_master_key_id: Optional[str] = None
    kms_signing_key_id: Optional[str] = None
    kms_region: Optional[str] = None
    kms_connect_timeout: float = Field(default=2.0, gt=0)
    kms_read_timeout: float = Field(default=5.0, gt=0)
    signing_algorithm: str = "RSASSA_PSS_SHA_256"

    @field_validator("issuer")
    @classmethod
    def _strip_issuer(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("issuer must not be empty")
        return value.strip()

    @property
    def resolved_jwks_url(self) -> str:
        """Explicit JWKS URL, or the issuer's well-known location."""
        if self.jwks_url:
            return self.jwks_url
        return f"{self.issuer.rstrip('/')}/.well-known/jwks.json"


def get_settings(**overrides) -> TrustSettings:
    """Build settings from the environment, applying explicit overrides."""
    return TrustSettings(**overrides)
