"""ACME issuer backed by ACMEOW.

ACMEOW drives the order-challenge-finalize flow synchronously and calls
plain functions to create and delete DNS records.  The flow runs in a
worker thread; its record callbacks hop back onto the event loop and
await the async :class:`~certpilot.acme.base.ChallengeHooks`.

Requires ACMEOW >= 1.1.0 for external CSR support via
``finalize_order(csr=<bytes>)``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from pathlib import Path
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding

from certpilot.acme.base import AcmeIssuer, ChallengeHooks, IssuanceError, directory_url
from certpilot.acme.csr import csr_domains

log = logging.getLogger(__name__)

_RETRYABLE_PATTERNS = ("timeout", "connection", "network", "server", "503", "429")


def _import_acmeow() -> tuple[type, type]:
    try:
        from acmeow import AcmeClient  # noqa: PLC0415
        from acmeow.handlers import CallbackDnsHandler  # noqa: PLC0415
    except ImportError as exc:
        msg = "ACMEOW is not installed. Install with: pip install 'certpilot[acme]'"
        raise IssuanceError(msg) from exc
    return AcmeClient, CallbackDnsHandler


class HookBridge:
    """Adapt async challenge hooks to ACMEOW's synchronous DNS callbacks.

    ACMEOW's delete callback receives no record value, so values
    published by :meth:`create_record` are remembered per
    ``(domain, record_name)`` and handed back in creation order.
    """

    def __init__(self, hooks: ChallengeHooks, loop: asyncio.AbstractEventLoop) -> None:
        self._hooks = hooks
        self._loop = loop
        self._values: dict[tuple[str, str], list[str]] = defaultdict(list)
        self._lock = threading.Lock()

    def _call(self, coro: Any) -> Any:  # noqa: ANN401
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()

    def create_record(self, domain: str, record_name: str, record_value: str) -> None:
        with self._lock:
            self._values[(domain, record_name)].append(record_value)
        self._call(self._hooks.setup(domain, record_name, record_value))

    def delete_record(self, domain: str, record_name: str) -> None:
        with self._lock:
            values = self._values.get((domain, record_name))
            value = values.pop(0) if values else None
        if value is None:
            log.warning("No published value remembered for %s (%s)", record_name, domain)
            return
        self._call(self._hooks.cleanup(domain, record_name, value))


class AcmeowIssuer(AcmeIssuer):
    """Issue certificates from Let's Encrypt through ACMEOW.

    Parameters
    ----------
    storage_path:
        Directory where ACMEOW keeps the account key.
    staging:
        Use the Let's Encrypt staging directory.
    propagation_delay:
        Seconds ACMEOW waits after publishing records before asking the
        CA to validate.
    directory:
        Explicit ACME directory URL, overriding *staging*.

    """

    def __init__(
        self,
        storage_path: str | Path,
        *,
        staging: bool = False,
        propagation_delay: int = 10,
        directory: str | None = None,
    ) -> None:
        self.storage_path = Path(storage_path)
        self.directory_url = directory or directory_url(staging=staging)
        self.propagation_delay = propagation_delay
        self._client: Any = None
        self._lock = threading.Lock()

    async def create_account(self, email: str | None) -> None:
        await asyncio.to_thread(self._create_account_sync, email)

    def _create_account_sync(self, email: str | None) -> None:
        acme_client_cls, _ = _import_acmeow()
        try:
            self.storage_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Failed to create account storage directory '{self.storage_path}': {exc}"
            raise IssuanceError(msg) from exc

        try:
            self._client = acme_client_cls(
                directory_url=self.directory_url,
                storage_path=str(self.storage_path),
            )
            if email:
                self._client.create_account(email=email)
            else:
                self._client.create_account()
        except Exception as exc:  # noqa: BLE001
            msg = f"Failed to initialise ACME account: {exc}"
            raise IssuanceError(msg, retryable=_is_retryable(exc)) from exc
        log.info("ACME account ready at %s", self.directory_url)

    async def issue(self, csr_pem: bytes, hooks: ChallengeHooks) -> str:
        if self._client is None:
            msg = "ACME client not initialised; call create_account() first"
            raise IssuanceError(msg)

        identifiers = csr_domains(csr_pem)
        if not identifiers:
            msg = "CSR contains no DNS Subject Alternative Names"
            raise IssuanceError(msg)

        bridge = HookBridge(hooks, asyncio.get_running_loop())
        csr_der = x509.load_pem_x509_csr(csr_pem).public_bytes(Encoding.DER)
        return await asyncio.to_thread(self._issue_sync, identifiers, csr_der, bridge)

    def _issue_sync(self, identifiers: list[str], csr_der: bytes, bridge: HookBridge) -> str:
        _, handler_cls = _import_acmeow()
        handler = handler_cls(
            create_record=bridge.create_record,
            delete_record=bridge.delete_record,
            propagation_delay=self.propagation_delay,
        )
        with self._lock:
            try:
                log.info("Creating ACME order for %s", ", ".join(identifiers))
                self._client.create_order(identifiers)

                log.info("Completing dns-01 challenges")
                self._client.complete_challenges(handler, challenge_type="dns-01")

                log.info("Finalising order with external CSR")
                self._client.finalize_order(csr=csr_der)

                cert_pem, _ = self._client.get_certificate()
            except Exception as exc:  # noqa: BLE001
                exc_type = type(exc).__name__
                msg = f"ACME error ({exc_type}): {exc}"
                raise IssuanceError(msg, retryable=_is_retryable(exc)) from exc
        log.info("Certificate issued for %s", ", ".join(identifiers))
        if isinstance(cert_pem, bytes):
            cert_pem = cert_pem.decode("ascii")
        return cert_pem


def _is_retryable(exc: Exception) -> bool:
    """Determine whether an ACME error is retryable via heuristics."""
    exc_name = type(exc).__name__.lower()
    msg = str(exc).lower()
    return any(p in exc_name or p in msg for p in _RETRYABLE_PATTERNS)
