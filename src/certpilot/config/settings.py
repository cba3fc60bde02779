"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from certpilot.config import get_config

    for cert in get_config().settings.certificates:
        print(cert.csr.domain_names, cert.challenge.provider)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from certpilot.providers.base import DEFAULT_TTL, ProviderCredential

DEFAULT_RSA_KEY_SIZE = 2048

# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountSettings:
    """ACME account registration and key storage."""

    email: str | None
    storage_path: str


def _build_account(data: dict | None) -> AccountSettings:
    d = data or {}
    return AccountSettings(
        email=d.get("email") or None,
        storage_path=d.get("storage_path", "./var/account"),
    )


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChallengeSettings:
    """DNS provider credential used to answer dns-01 challenges."""

    provider: str
    secret_id: str
    secret_key: str = field(repr=False)
    ttl: int = DEFAULT_TTL

    def credential(self) -> ProviderCredential:
        return ProviderCredential(
            provider=self.provider,
            secret_id=self.secret_id,
            secret_key=self.secret_key,
            ttl=self.ttl,
        )


def _build_challenge(data: dict) -> ChallengeSettings:
    return ChallengeSettings(
        provider=data["provider"],
        secret_id=data["secret_id"],
        secret_key=data["secret_key"],
        ttl=data.get("ttl", DEFAULT_TTL),
    )


def _build_challenge_presets(data: dict | None) -> dict[str, ChallengeSettings]:
    return {name: _build_challenge(block) for name, block in (data or {}).items()}


def _resolve_challenge_ref(
    ref: str | dict,
    presets: dict[str, ChallengeSettings],
) -> ChallengeSettings:
    """Resolve a certificate's ``challenge`` entry.

    *ref* is a preset name, a full challenge block, or
    ``{"preset": name, "ttl": n}`` overriding the preset's ttl.
    """
    if isinstance(ref, str):
        name, overrides = ref, {}
    elif "preset" in ref:
        name, overrides = ref["preset"], ref
    else:
        return _build_challenge(ref)

    try:
        preset = presets[name]
    except KeyError:
        msg = f"Unknown challenge preset '{name}'"
        raise ValueError(msg) from None
    if "ttl" in overrides:
        return ChallengeSettings(
            provider=preset.provider,
            secret_id=preset.secret_id,
            secret_key=preset.secret_key,
            ttl=overrides["ttl"],
        )
    return preset


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CsrSettings:
    """Subject and key parameters of one certificate request.

    ``key`` is an RSA key size to generate, or the path of a PEM key.
    """

    domain_names: tuple[str, ...]
    country: str | None = None
    province: str | None = None
    city: str | None = None
    organization: str | None = None
    email: str | None = None
    key: int | str = DEFAULT_RSA_KEY_SIZE

    @property
    def common_name(self) -> str:
        return self.domain_names[0]


def _build_csr(data: list | dict) -> CsrSettings:
    if isinstance(data, list):
        return CsrSettings(domain_names=tuple(data))
    return CsrSettings(
        domain_names=tuple(data["domain_names"]),
        country=data.get("country"),
        province=data.get("province"),
        city=data.get("city"),
        organization=data.get("organization"),
        email=data.get("email"),
        key=data.get("key", DEFAULT_RSA_KEY_SIZE),
    )


@dataclass(frozen=True)
class CertificateSettings:
    """One certificate to keep issued."""

    csr: CsrSettings
    challenge: ChallengeSettings


def _build_certificates(
    data: list | None,
    presets: dict[str, ChallengeSettings],
) -> tuple[CertificateSettings, ...]:
    return tuple(
        CertificateSettings(
            csr=_build_csr(entry["csr"]),
            challenge=_resolve_challenge_ref(entry["challenge"], presets),
        )
        for entry in data or []
    )


# ---------------------------------------------------------------------------
# DNS-01
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Dns01Settings:
    """Pacing and timeouts for DNS provider calls."""

    operation_interval_seconds: float
    cleanup_jitter_seconds: float
    request_timeout_seconds: float
    propagation_delay_seconds: int


def _build_dns01(data: dict | None) -> Dns01Settings:
    d = data or {}
    return Dns01Settings(
        operation_interval_seconds=d.get("operation_interval_seconds", 0.5),
        cleanup_jitter_seconds=d.get("cleanup_jitter_seconds", 2.0),
        request_timeout_seconds=d.get("request_timeout_seconds", 30),
        propagation_delay_seconds=d.get("propagation_delay_seconds", 10),
    )


# ---------------------------------------------------------------------------
# Renewal
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RenewalSettings:
    renew_before_days: int


def _build_renewal(data: dict | None) -> RenewalSettings:
    d = data or {}
    return RenewalSettings(renew_before_days=d.get("renew_before_days", 30))


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Log level, output format and optional log file."""

    level: str
    format: str
    file: str | None


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
        file=d.get("file") or None,
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertPilotSettings:
    """Root of the typed settings tree."""

    staging: bool
    work_directory: str
    account: AccountSettings
    challenges: dict[str, ChallengeSettings]
    certificates: tuple[CertificateSettings, ...]
    dns01: Dns01Settings
    renewal: RenewalSettings
    logging: LoggingSettings


def build_settings(data: dict[str, Any]) -> CertPilotSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`CertPilotConfig` initialization after
    schema validation and environment-variable resolution.

    Raises
    ------
    ValueError
        If a certificate references an unknown challenge preset.

    """
    presets = _build_challenge_presets(data.get("challenges"))
    return CertPilotSettings(
        staging=data.get("staging", False),
        work_directory=data.get("work_directory", "."),
        account=_build_account(data.get("account")),
        challenges=presets,
        certificates=_build_certificates(data.get("certificates"), presets),
        dns01=_build_dns01(data.get("dns01")),
        renewal=_build_renewal(data.get("renewal")),
        logging=_build_logging(data.get("logging")),
    )
