"""
Trust service package.

Token validation against a rotating published key set, and tamper-evident
document signatures through an external key custodian:

- app.jwks: Key-set cache (fetch, parse, atomic refresh).
- app.validation: Access/identity token validation and claims models.
- app.custodian: Key custodian interface, AWS KMS binding, envelope encryption.
- app.canonical: Deterministic document encoding.
- app.signing: Sign/verify orchestration and signature records.
- app.factory: Wiring from TrustSettings.

Design notes:
- Importing any module performs no network calls.
- Use the shared/ utilities for configuration, logging, metrics and errors.
- Secret key material (data-key plaintext) is never logged or persisted.
"""
