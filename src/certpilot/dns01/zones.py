"""Zone resolution: map a domain to the provider zone that owns it.

The match is the *longest* provider zone that is a dot-aligned suffix of
the domain, so ``a.b.example.com`` resolves to ``b.example.com`` when
both ``example.com`` and ``b.example.com`` are managed.  Listing order
never affects the result.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from certpilot.errors import ZoneNotFound, ZoneNotUsable

if TYPE_CHECKING:
    from certpilot.providers.base import DnsProvider, Zone

log = logging.getLogger(__name__)

CHALLENGE_LABEL = "_acme-challenge"


def normalize_domain(domain: str) -> str:
    """Lower-case *domain*, drop a trailing dot and a leading ``*.``."""
    name = domain.strip().lower().rstrip(".")
    if name.startswith("*."):
        name = name[2:]
    return name


def challenge_subdomain(relative_subdomain: str) -> str:
    """Return the record name, relative to the zone, for a challenge.

    >>> challenge_subdomain("")
    '_acme-challenge'
    >>> challenge_subdomain("a")
    '_acme-challenge.a'
    """
    if relative_subdomain:
        return f"{CHALLENGE_LABEL}.{relative_subdomain}"
    return CHALLENGE_LABEL


@dataclass(frozen=True)
class ZoneMatch:
    """A domain split into its managing zone and the remaining labels.

    ``relative_subdomain`` is empty when the domain is the zone apex;
    otherwise ``f"{relative_subdomain}.{zone_name}"`` is the domain.
    """

    zone_name: str
    relative_subdomain: str

    @property
    def domain(self) -> str:
        if self.relative_subdomain:
            return f"{self.relative_subdomain}.{self.zone_name}"
        return self.zone_name

    @property
    def challenge_subdomain(self) -> str:
        return challenge_subdomain(self.relative_subdomain)

    @property
    def record_fqdn(self) -> str:
        """Fully-qualified name of the challenge TXT record."""
        return f"{self.challenge_subdomain}.{self.zone_name}"


def match_zone(domain: str, zones: Iterable[Zone]) -> Zone | None:
    """Return the longest zone that is a dot-aligned suffix of *domain*.

    *domain* is normalised first.  Returns ``None`` when no zone matches.
    """
    name = normalize_domain(domain)
    best: Zone | None = None
    best_len = -1
    for zone in zones:
        zone_name = normalize_domain(zone.name)
        if not zone_name:
            continue
        if (name == zone_name or name.endswith("." + zone_name)) and len(zone_name) > best_len:
            best = zone
            best_len = len(zone_name)
    return best


def split_domain(domain: str, zone_name: str) -> ZoneMatch:
    """Split *domain* into a :class:`ZoneMatch` under *zone_name*."""
    name = normalize_domain(domain)
    zone = normalize_domain(zone_name)
    relative = "" if name == zone else name[: -(len(zone) + 1)]
    return ZoneMatch(zone_name=zone, relative_subdomain=relative)


class ZoneResolver:
    """Resolve domains against one provider's zone list.

    The zone list is fetched at most once per resolver.  The zone
    matched for each domain, or its absence, is memoised per domain.
    Provider API failures are not memoised: the next call fetches again.

    Parameters
    ----------
    provider:
        The provider whose zones are searched.

    """

    def __init__(self, provider: DnsProvider) -> None:
        self._provider = provider
        self._zones: list[Zone] | None = None
        self._lock = asyncio.Lock()
        self._matches: dict[str, Zone | None] = {}

    async def zones(self) -> list[Zone]:
        """Return the provider's zones, fetching them on first use."""
        async with self._lock:
            if self._zones is None:
                log.debug("Fetching zone list from %s", self._provider.name)
                self._zones = await self._provider.list_zones()
            return self._zones

    async def resolve(self, domain: str) -> ZoneMatch:
        """Resolve *domain* to its zone and relative subdomain.

        Raises
        ------
        ZoneNotFound
            No managed zone is a suffix of *domain*.
        ZoneNotUsable
            The matching zone is disabled or not delegated.
        ApiCallFailed
            The zone list could not be fetched.

        """
        key = normalize_domain(domain)
        if key in self._matches:
            zone = self._matches[key]
        else:
            zone = match_zone(key, await self.zones())
            self._matches[key] = zone
            log.debug(
                "Matched %s to zone %s",
                key,
                zone.name if zone is not None else "(none)",
            )

        # Only the match is memoised; failures are raised fresh each call.
        if zone is None:
            raise ZoneNotFound(key)
        if not zone.enabled:
            raise ZoneNotUsable(zone.name, "zone is disabled at the provider")
        if not zone.delegated:
            raise ZoneNotUsable(
                zone.name,
                "zone is not delegated to the provider's nameservers",
            )
        return split_domain(key, zone.name)
