"""Interfaces between the DNS-01 layer and the ACME protocol client.

The ACME client is an external collaborator.  It depends only on
:class:`ChallengeHooks`; the DNS layer depends only on
:class:`AcmeIssuer`.
"""

from __future__ import annotations

import abc
import logging
from typing import Any

log = logging.getLogger(__name__)

LETSENCRYPT_DIRECTORY = "https://acme-v02.api.letsencrypt.org/directory"
LETSENCRYPT_STAGING_DIRECTORY = "https://acme-staging-v02.api.letsencrypt.org/directory"


def directory_url(*, staging: bool) -> str:
    """Return the Let's Encrypt directory for production or staging."""
    return LETSENCRYPT_STAGING_DIRECTORY if staging else LETSENCRYPT_DIRECTORY


class IssuanceError(Exception):
    """Raised when the ACME client fails to issue a certificate.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient and issuance may be retried.

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


class ChallengeHooks(abc.ABC):
    """DNS-01 setup and cleanup callbacks invoked during validation.

    Implementations must never raise: a failure is logged and the hook
    returns, so the CA's authorization eventually times out for that
    domain only.
    """

    @abc.abstractmethod
    async def setup(self, domain: str, token: str, value: str) -> Any:  # noqa: ANN401
        """Publish the TXT record ``value`` for *domain*."""

    @abc.abstractmethod
    async def cleanup(self, domain: str, token: str, value: str) -> Any:  # noqa: ANN401
        """Remove the TXT record ``value`` published for *domain*."""


class AcmeIssuer(abc.ABC):
    """Runs ACME orders to completion.

    Subclasses implement :meth:`create_account` and :meth:`issue`.
    """

    @abc.abstractmethod
    async def create_account(self, email: str | None) -> None:
        """Register (or load) the ACME account.

        Raises
        ------
        IssuanceError
            If registration fails.

        """

    @abc.abstractmethod
    async def issue(self, csr_pem: bytes, hooks: ChallengeHooks) -> str:
        """Order, validate and finalise a certificate for *csr_pem*.

        Returns
        -------
        str
            PEM certificate chain, leaf first.

        Raises
        ------
        IssuanceError
            On any ACME failure.

        """
