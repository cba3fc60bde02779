"""Challenge orchestrator: the DNS-01 hooks handed to the ACME issuer.

One :class:`ChallengeOrchestrator` wraps one provider credential for the
validation phase of one certificate request.  It owns that credential's
zone resolver and operation queue, and both die with it.

``setup`` and ``cleanup`` never raise.  A failure for one domain is
logged and the hook returns, leaving the CA's own authorization polling
to time out.  Raising would abort validation of every other domain in
the same order.

Per-challenge states::

    IDLE -> ZONE_RESOLVING -> QUEUED -> CREATED -> CLEANUP_QUEUED -> REMOVED
                 \\________________\\__________________\\__> FAILED
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from certpilot.acme.base import ChallengeHooks
from certpilot.core.types import ChallengeState, DeleteOutcome
from certpilot.dns01.queue import DEFAULT_INTERVAL_SECONDS, OperationQueue
from certpilot.dns01.zones import ZoneMatch, ZoneResolver
from certpilot.errors import DnsChallengeError
from certpilot.logging.setup import challenge_context

if TYPE_CHECKING:
    from certpilot.providers.base import DnsProvider

log = logging.getLogger(__name__)

DEFAULT_CLEANUP_JITTER_SECONDS = 2.0


class ChallengeOrchestrator(ChallengeHooks):
    """Create and remove ``_acme-challenge`` TXT records for one credential.

    Parameters
    ----------
    provider:
        DNS provider client bound to the credential.
    operation_interval:
        Pause after each queued create or delete, in seconds.
    cleanup_jitter:
        Upper bound of the random pause taken before each cleanup.
    sleep:
        Coroutine function used for every pause.
    rng:
        Random source for the cleanup jitter.

    """

    def __init__(
        self,
        provider: DnsProvider,
        *,
        operation_interval: float = DEFAULT_INTERVAL_SECONDS,
        cleanup_jitter: float = DEFAULT_CLEANUP_JITTER_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.provider = provider
        self.resolver = ZoneResolver(provider)
        self.queue = OperationQueue(operation_interval, sleep=sleep, name=provider.name)
        self.cleanup_jitter = max(0.0, cleanup_jitter)
        self._sleep = sleep
        self._rng = rng or random.Random()  # noqa: S311
        self._states: dict[tuple[str, str], ChallengeState] = {}

    # -- state ---------------------------------------------------------------

    def state_of(self, domain: str, value: str) -> ChallengeState:
        """Return the current state of the challenge ``(domain, value)``."""
        return self._states.get((domain, value), ChallengeState.IDLE)

    def _transition(self, domain: str, value: str, state: ChallengeState) -> None:
        previous = self.state_of(domain, value)
        self._states[(domain, value)] = state
        log.debug("Challenge %s: %s -> %s", domain, previous, state)

    # -- hooks ---------------------------------------------------------------

    async def setup(self, domain: str, token: str, value: str) -> ChallengeState:  # noqa: ARG002
        """Publish the challenge TXT record for *domain*.

        Returns the resulting state: ``CREATED`` on success, ``FAILED``
        otherwise.  Never raises.
        """
        with challenge_context(provider=self.provider.name, domain=domain):
            log.info("Setting up DNS-01 challenge for %s", domain)
            try:
                self._transition(domain, value, ChallengeState.ZONE_RESOLVING)
                match = await self.resolver.resolve(domain)

                self._transition(domain, value, ChallengeState.QUEUED)
                await self.queue.enqueue(
                    lambda: self.provider.create_record(
                        match.zone_name,
                        match.challenge_subdomain,
                        value,
                    ),
                    label=f"create {match.record_fqdn}",
                )
            except DnsChallengeError as exc:
                self._fail(domain, value, "setup", exc)
                return ChallengeState.FAILED
            except Exception:  # noqa: BLE001
                log.exception("Unexpected error while setting up challenge for %s", domain)
                self._transition(domain, value, ChallengeState.FAILED)
                return ChallengeState.FAILED

            self._transition(domain, value, ChallengeState.CREATED)
            log.info("Published TXT record %s", match.record_fqdn)
            return ChallengeState.CREATED

    async def cleanup(self, domain: str, token: str, value: str) -> DeleteOutcome:  # noqa: ARG002
        """Remove the challenge TXT record carrying *value*.

        Returns ``DELETED``, ``NOT_FOUND`` (already gone, logged as a
        warning) or ``FAILED``.  Never raises.
        """
        with challenge_context(provider=self.provider.name, domain=domain):
            log.info("Cleaning up DNS-01 challenge for %s", domain)
            try:
                if self.cleanup_jitter:
                    await self._sleep(self._rng.uniform(0, self.cleanup_jitter))

                match = await self.resolver.resolve(domain)
                self._transition(domain, value, ChallengeState.CLEANUP_QUEUED)
                outcome = await self.queue.enqueue(
                    lambda: self.provider.delete_record(
                        match.zone_name,
                        match.challenge_subdomain,
                        value,
                    ),
                    label=f"delete {match.record_fqdn}",
                )
            except DnsChallengeError as exc:
                self._fail(domain, value, "cleanup", exc)
                return DeleteOutcome.FAILED
            except Exception:  # noqa: BLE001
                log.exception("Unexpected error while cleaning up challenge for %s", domain)
                self._transition(domain, value, ChallengeState.FAILED)
                return DeleteOutcome.FAILED

            self._transition(domain, value, ChallengeState.REMOVED)
            if outcome is DeleteOutcome.NOT_FOUND:
                log.warning(
                    "No matching TXT record at '%s' in zone '%s'; already removed",
                    match.challenge_subdomain,
                    match.zone_name,
                )
            else:
                log.info("Removed TXT record %s", match.record_fqdn)
            return outcome

    # -- lifecycle -----------------------------------------------------------

    async def resolve_zone(self, domain: str) -> ZoneMatch:
        """Resolve *domain* without touching any record (diagnostics)."""
        return await self.resolver.resolve(domain)

    async def aclose(self) -> None:
        """Let queued operations finish, then release the provider."""
        await self.queue.drain()
        await self.provider.aclose()

    def _fail(self, domain: str, value: str, step: str, exc: DnsChallengeError) -> None:
        self._transition(domain, value, ChallengeState.FAILED)
        log.error(
            "DNS-01 %s failed for %s: %s%s",
            step,
            domain,
            exc.detail,
            " (retryable)" if exc.retryable else "",
        )
