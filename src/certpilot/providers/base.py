"""Abstract base class for cloud DNS providers.

A provider wraps one vendor's HTTP API behind four primitives (list
zones, list TXT records, add a record, remove a record) and builds the
challenge-record lifecycle on top of them:

- :meth:`DnsProvider.create_record` adds a TXT record.  Creating a
  record that already exists is tolerated; some vendors accept the
  duplicate, others reject it, and the CA only needs one copy.
- :meth:`DnsProvider.delete_record` removes only records matching both
  the subdomain *and* the value, so a sibling challenge written to the
  same name (apex plus wildcard) survives.

Every vendor failure surfaces as :class:`~certpilot.errors.ApiCallFailed`.
"""

from __future__ import annotations

import abc
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from certpilot.core.types import DeleteOutcome
from certpilot.errors import ApiCallFailed

if TYPE_CHECKING:
    from types import TracebackType

log = logging.getLogger(__name__)

DEFAULT_TTL = 600
DEFAULT_TIMEOUT_SECONDS = 30.0

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class ProviderCredential:
    """API credential for one provider account.

    Immutable for the lifetime of a certificate request.
    """

    provider: str
    secret_id: str
    secret_key: str = field(repr=False)
    ttl: int = DEFAULT_TTL


@dataclass(frozen=True)
class Zone:
    """A DNS zone managed by the provider."""

    name: str
    zone_id: str | None = None
    enabled: bool = True
    delegated: bool = True


@dataclass(frozen=True)
class TxtRecord:
    """A TXT record as reported by the provider."""

    record_id: str
    subdomain: str
    value: str


class DnsProvider(abc.ABC):
    """Base class for all DNS provider clients.

    Subclasses set :attr:`name` and implement :meth:`list_zones`,
    :meth:`list_records`, :meth:`add_record` and :meth:`remove_record`.

    Parameters
    ----------
    credential:
        API credential and record TTL.
    timeout:
        Per-request timeout in seconds.
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests inject one with
        a mock transport).  When omitted, one is created lazily and
        closed by :meth:`aclose`.
    clock:
        Returns the current Unix time; used for request timestamps.

    """

    name: ClassVar[str]
    retryable_codes: ClassVar[frozenset[str]] = frozenset()

    def __init__(
        self,
        credential: ProviderCredential,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.credential = credential
        self.ttl = credential.ttl
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._clock = clock

    # -- HTTP plumbing ------------------------------------------------------

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> DnsProvider:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def _timestamp(self) -> int:
        return int(self._clock())

    async def _send(self, request: httpx.Request) -> httpx.Response:
        """Send *request*, mapping transport failures to ``ApiCallFailed``."""
        try:
            return await self.client.send(request)
        except httpx.HTTPError as exc:
            msg = f"{self.name} API request to {request.url.host} failed: {exc}"
            raise ApiCallFailed(msg, retryable=True) from exc

    def _decode(self, response: httpx.Response, action: str) -> dict[str, Any]:
        """Decode a JSON object body or raise ``ApiCallFailed``."""
        try:
            data = response.json()
        except ValueError as exc:
            msg = f"{self.name} {action}: undecodable response (HTTP {response.status_code})"
            raise ApiCallFailed(
                msg,
                status=response.status_code,
                retryable=response.status_code in _RETRYABLE_STATUS,
            ) from exc
        if not isinstance(data, dict):
            msg = f"{self.name} {action}: expected a JSON object, got {type(data).__name__}"
            raise ApiCallFailed(msg, status=response.status_code)
        return data

    def _is_retryable(self, code: str | None, status: int | None) -> bool:
        if status in _RETRYABLE_STATUS:
            return True
        return code is not None and code in self.retryable_codes

    # -- vendor primitives --------------------------------------------------

    @abc.abstractmethod
    async def list_zones(self) -> list[Zone]:
        """Return every zone the credential can manage."""

    @abc.abstractmethod
    async def list_records(self, zone_name: str, subdomain: str) -> list[TxtRecord]:
        """Return TXT records at *subdomain* (possibly a superset)."""

    @abc.abstractmethod
    async def add_record(self, zone_name: str, subdomain: str, value: str) -> None:
        """Create one TXT record."""

    @abc.abstractmethod
    async def remove_record(self, zone_name: str, record: TxtRecord) -> None:
        """Delete one TXT record by its provider id."""

    # -- record lifecycle ---------------------------------------------------

    async def create_record(self, zone_name: str, subdomain: str, value: str) -> None:
        """Create the challenge TXT record ``subdomain.zone_name = value``.

        Raises
        ------
        ApiCallFailed
            If the provider rejects the request.

        """
        log.info(
            "Creating TXT record %s.%s (ttl=%d) via %s",
            subdomain,
            zone_name,
            self.ttl,
            self.name,
        )
        await self.add_record(zone_name, subdomain, value)

    async def delete_record(self, zone_name: str, subdomain: str, value: str) -> DeleteOutcome:
        """Delete TXT records matching both *subdomain* and *value*.

        Returns
        -------
        DeleteOutcome
            ``DELETED`` when at least one record was removed,
            ``NOT_FOUND`` when nothing matched.

        Raises
        ------
        ApiCallFailed
            If listing or deleting fails.

        """
        records = await self.list_records(zone_name, subdomain)
        matched = [r for r in records if r.subdomain == subdomain and r.value == value]
        if not matched:
            log.debug(
                "No TXT record at %s.%s carries the expected value (%d candidate(s))",
                subdomain,
                zone_name,
                len(records),
            )
            return DeleteOutcome.NOT_FOUND

        for record in matched:
            log.info(
                "Deleting TXT record %s (%s.%s) via %s",
                record.record_id,
                subdomain,
                zone_name,
                self.name,
            )
            await self.remove_record(zone_name, record)
        return DeleteOutcome.DELETED
