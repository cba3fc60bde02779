"""The issuance task: keep every configured certificate issued and fresh.

For each certificate, in configuration order:

1. Load the stored certificate; skip it while it is outside the
   renewal window.
2. Generate a key and CSR.
3. Build a :class:`~certpilot.dns01.ChallengeOrchestrator` for the
   certificate's DNS credential and let the issuer validate every
   domain through it.
4. Save the chain and key.

One certificate's failure is logged and never stops the others.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from certpilot.acme.base import AcmeIssuer, IssuanceError
from certpilot.acme.csr import create_csr
from certpilot.certificates import CertificateStore, common_name, needs_renewal
from certpilot.dns01.orchestrator import ChallengeOrchestrator
from certpilot.errors import DnsChallengeError
from certpilot.providers.registry import load_provider

if TYPE_CHECKING:
    from pathlib import Path

    from certpilot.config.settings import CertificateSettings, CertPilotSettings

log = logging.getLogger(__name__)


class TaskOutcome(StrEnum):
    ISSUED = "issued"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class CertificateResult:
    """What happened to one configured certificate."""

    common_name: str
    domain_names: tuple[str, ...]
    outcome: TaskOutcome
    path: Path | None = None
    error: str | None = None


def build_orchestrator(
    certificate: CertificateSettings,
    settings: CertPilotSettings,
) -> ChallengeOrchestrator:
    """Create the orchestrator for one certificate's DNS credential."""
    provider = load_provider(
        certificate.challenge.credential(),
        timeout=settings.dns01.request_timeout_seconds,
    )
    return ChallengeOrchestrator(
        provider,
        operation_interval=settings.dns01.operation_interval_seconds,
        cleanup_jitter=settings.dns01.cleanup_jitter_seconds,
    )


async def maintain_certificate(
    certificate: CertificateSettings,
    settings: CertPilotSettings,
    issuer: AcmeIssuer,
    store: CertificateStore,
) -> CertificateResult:
    """Issue or renew one certificate.  Never raises for ordinary failures."""
    domains = certificate.csr.domain_names
    name = common_name(domains)

    try:
        stored = store.load(domains)
        if not needs_renewal(stored, settings.renewal.renew_before_days):
            return CertificateResult(name, domains, TaskOutcome.SKIPPED, path=stored.path)

        log.info(
            "Requesting certificate for %s%s",
            ", ".join(domains),
            " (staging)" if settings.staging else "",
        )
        csr_pem, key_pem = create_csr(certificate.csr)
        orchestrator = build_orchestrator(certificate, settings)
        try:
            chain = await issuer.issue(csr_pem, orchestrator)
        finally:
            await orchestrator.aclose()
        saved = store.save(domains, chain, key_pem)
    except (IssuanceError, DnsChallengeError) as exc:
        log.error("Certificate %s failed: %s", name, exc.detail)  # noqa: TRY400
        return CertificateResult(name, domains, TaskOutcome.FAILED, error=exc.detail)
    except (OSError, ValueError, TypeError) as exc:
        log.exception("Certificate %s failed", name)
        return CertificateResult(name, domains, TaskOutcome.FAILED, error=str(exc))

    log.info("Certificate issued for %s", ", ".join(domains))
    return CertificateResult(name, domains, TaskOutcome.ISSUED, path=saved.path)


async def run_task(settings: CertPilotSettings, issuer: AcmeIssuer) -> list[CertificateResult]:
    """Register the account, then maintain every configured certificate.

    Raises
    ------
    IssuanceError
        If the ACME account cannot be initialised.

    """
    log.info(
        "Starting certificate maintenance for %d certificate(s)",
        len(settings.certificates),
    )
    await issuer.create_account(settings.account.email)

    store = CertificateStore(settings.work_directory, staging=settings.staging)
    results = [
        await maintain_certificate(certificate, settings, issuer, store)
        for certificate in settings.certificates
    ]

    failed = sum(1 for r in results if r.outcome is TaskOutcome.FAILED)
    log.info(
        "Certificate maintenance finished: %d issued, %d skipped, %d failed",
        sum(1 for r in results if r.outcome is TaskOutcome.ISSUED),
        sum(1 for r in results if r.outcome is TaskOutcome.SKIPPED),
        failed,
    )
    return results
