"""ACME issuance: issuer interface, ACMEOW backend and CSR helpers."""

from certpilot.acme.base import AcmeIssuer, ChallengeHooks, IssuanceError

__all__ = ["AcmeIssuer", "ChallengeHooks", "IssuanceError"]
