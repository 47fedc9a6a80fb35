"""
Unit tests for settings and component wiring.
"""

import pytest
from pydantic import ValidationError

from service_trust.app.custodian import AwsKmsCustodian, DataKeySpec, SigningAlgorithm, open_sealed, seal
from service_trust.app.factory import (
    build_custodian,
    build_key_set_cache,
    build_signing_orchestrator,
    build_token_validator,
)
from shared.config import TrustSettings, get_settings
from shared.test_helpers import DocumentFactory, FakeKmsClient, MockEnvironment


@pytest.fixture
def mock_env(monkeypatch):
    for name, value in MockEnvironment.get_mock_config().items():
        monkeypatch.setenv(name, value)


class TestTrustSettings:
    """Test cases for TrustSettings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("TRUST_ISSUER", raising=False)
        settings = TrustSettings(_env_file=None)

        assert settings.jwks_ttl_seconds == 600
        assert settings.leeway_seconds == 120
        assert settings.allowed_algorithms == ["RS256"]
        assert settings.signing_algorithm == "RSASSA_PSS_SHA_256"

    def test_reads_environment(self, mock_env):
        settings = get_settings()

        assert settings.issuer == "https://issuer.example"
        assert settings.audience == "app-1"
        assert settings.jwks_ttl_seconds == 300
        assert settings.leeway_seconds == 60
        assert settings.allowed_algorithms == ["RS256", "PS256"]
        assert settings.kms_master_key_id == "alias/notes-master"
        assert settings.kms_signing_key_id == "alias/notes-signing"

    def test_jwks_url_derived_from_issuer(self):
        settings = get_settings(issuer=" https://issuer.example/pool-1/ ")

        assert settings.issuer == "https://issuer.example/pool-1/"
        assert settings.resolved_jwks_url == "https://issuer.example/pool-1/.well-known/jwks.json"

    def test_explicit_jwks_url_wins(self):
        settings = get_settings(issuer="https://issuer.example", jwks_url="https://keys.example/jwks.json")

        assert settings.resolved_jwks_url == "https://keys.example/jwks.json"

    @pytest.mark.parametrize(
        "overrides",
        [{"issuer": "  "}, {"jwks_ttl_seconds": 0}, {"leeway_seconds": -1}],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValidationError):
            get_settings(**overrides)


class TestFactory:
    """Test cases for component wiring."""

    def test_build_token_validator(self, mock_env):
        settings = get_settings()

        validator = build_token_validator(settings)

        assert validator.issuer == "https://issuer.example"
        assert validator.audience == "app-1"
        assert validator.leeway == 60
        assert validator.algorithms == ("RS256", "PS256")
        assert validator.key_set.jwks_url == "https://issuer.example/.well-known/jwks.json"
        assert validator.key_set.ttl == 300
        assert validator.metrics is validator.key_set.metrics

    def test_build_key_set_cache_uses_explicit_url(self):
        settings = get_settings(issuer="https://issuer.example", jwks_url="https://keys.example/jwks.json")

        assert build_key_set_cache(settings).jwks_url == "https://keys.example/jwks.json"

    def test_validator_rejects_non_rsa_configuration(self):
        settings = get_settings(issuer="https://issuer.example", allowed_algorithms=["HS256"])

        with pytest.raises(ValueError):
            build_token_validator(settings)

    def test_build_custodian(self, mock_env):
        custodian = build_custodian(get_settings())

        assert isinstance(custodian, AwsKmsCustodian)
        assert custodian.master_key_id == "alias/notes-master"

    def test_build_custodian_uses_injected_client(self, mock_env):
        client = FakeKmsClient()

        assert build_custodian(get_settings(), client=client)._client is client

    @pytest.mark.asyncio
    async def test_custodian_without_master_key_cannot_generate(self):
        custodian = build_custodian(get_settings(kms_master_key_id=None), client=FakeKmsClient())

        with pytest.raises(ValueError):
            await custodian.generate_data_key(DataKeySpec.AES_256)

    def test_orchestrator_requires_signing_key(self):
        custodian = AwsKmsCustodian("alias/notes-master", client=FakeKmsClient())

        with pytest.raises(ValueError):
            build_signing_orchestrator(get_settings(kms_signing_key_id=None), custodian=custodian)

    def test_build_signing_orchestrator(self, mock_env):
        custodian = AwsKmsCustodian("alias/notes-master", client=FakeKmsClient())

        orchestrator = build_signing_orchestrator(
            get_settings(signing_algorithm="RSASSA_PKCS1_V1_5_SHA_256"),
            custodian=custodian,
        )

        assert orchestrator.custodian is custodian
        assert orchestrator.key_ref == "alias/notes-signing"
        assert orchestrator.algorithm is SigningAlgorithm.RSASSA_PKCS1_V1_5_SHA_256

    @pytest.mark.asyncio
    async def test_one_custodian_seals_and_signs(self, mock_env):
        """Data keys come from the master key and signatures from the signing key."""
        settings = get_settings()
        kms = FakeKmsClient(master_key_id=settings.kms_master_key_id)
        kms.add_signing_key(settings.kms_signing_key_id)
        custodian = build_custodian(settings, client=kms)
        orchestrator = build_signing_orchestrator(settings, custodian=custodian)
        note = DocumentFactory.note()

        sealed = await seal(custodian, note["content"].encode("utf-8"), associated_data=b"note-001")
        record = await orchestrator.sign(note)

        assert await open_sealed(custodian, sealed, associated_data=b"note-001") == note["content"].encode("utf-8")
        assert await orchestrator.verify(note, record) is True
        assert kms.calls == ["GenerateDataKey", "Sign", "Decrypt", "Verify"]
