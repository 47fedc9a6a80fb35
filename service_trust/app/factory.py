"""
Component wiring from TrustSettings.

Nothing here performs IO; network clients are created but not used until the
first call.
"""

from typing import Any, Optional

from shared.config import TrustSettings
from shared.logging import configure_logging
from shared.metrics import TrustMetrics
from .custodian.aws_kms import AwsKmsCustodian, build_kms_client
from .custodian.base import KeyCustodianClient, SigningAlgorithm
from .jwks.cache import KeySetCache
from .signing.orchestrator import SigningOrchestrator
from .validation.token_validator import TokenValidator

SERVICE_NAME = "trust"


def configure_service_logging(settings: TrustSettings) -> None:
    configure_logging(SERVICE_NAME, settings.log_level)


def build_key_set_cache(settings: TrustSettings, metrics: Optional[TrustMetrics] = None) -> KeySetCache:
    return KeySetCache(
        settings.resolved_jwks_url,
        settings.jwks_ttl_seconds,
        http_timeout=settings.http_timeout_seconds,
        metrics=metrics,
    )


def build_token_validator(
    settings: TrustSettings,
    key_set: Optional[KeySetCache] = None,
    metrics: Optional[TrustMetrics] = None,
) -> TokenValidator:
    metrics = metrics or TrustMetrics()
    return TokenValidator(
        key_set or build_key_set_cache(settings, metrics),
        settings.issuer,
        settings.audience,
        leeway=settings.leeway_seconds,
        algorithms=settings.allowed_algorithms,
        metrics=metrics,
    )


def build_custodian(settings: TrustSettings, client: Any = None) -> AwsKmsCustodian:
    """KMS custodian wrapping data keys under ``kms_master_key_id``.

    The master key may be left unset for sign-only deployments; data-key
    generation then fails at call time.
    """
    if client is None:
        client = build_kms_client(
            settings.kms_region,
            connect_timeout=settings.kms_connect_timeout,
            read_timeout=settings.kms_read_timeout,
        )
    return AwsKmsCustodian(settings.kms_master_key_id, client=client)


def build_signing_orchestrator(
    settings: TrustSettings,
    custodian: Optional[KeyCustodianClient] = None,
    metrics: Optional[TrustMetrics] = None,
) -> SigningOrchestrator:
    if not settings.kms_signing_key_id:
        raise ValueError("TRUST_KMS_SIGNING_KEY_ID is required for signing")
    return SigningOrchestrator(
        custodian or build_custodian(settings),
        settings.kms_signing_key_id,
        SigningAlgorithm(settings.signing_algorithm),
        metrics=metrics,
    )
