"""Shared fixtures for DNS-01 tests: an in-memory provider."""

from __future__ import annotations

import itertools

import pytest

from certpilot.errors import ApiCallFailed
from certpilot.providers.base import DnsProvider, ProviderCredential, TxtRecord, Zone


class MemoryProvider(DnsProvider):
    """Provider backed by a dict; records every mutation in order."""

    name = "memory"

    def __init__(self, zones: list[Zone] | None = None) -> None:
        super().__init__(ProviderCredential("memory", "id", "secret"))
        self.zones = zones if zones is not None else [Zone("example.com")]
        self.records: dict[str, TxtRecord] = {}
        self.log: list[tuple[str, str, str, str]] = []
        self.list_zone_calls = 0
        self.fail_next: ApiCallFailed | None = None
        self._ids = itertools.count(1)

    def _maybe_fail(self) -> None:
        if self.fail_next is not None:
            exc, self.fail_next = self.fail_next, None
            raise exc

    async def list_zones(self):
        self.list_zone_calls += 1
        self._maybe_fail()
        return list(self.zones)

    async def list_records(self, zone_name, subdomain):
        self._maybe_fail()
        return [
            r for key, r in self.records.items() if key.startswith(f"{zone_name}/") and r.subdomain == subdomain
        ]

    async def add_record(self, zone_name, subdomain, value):
        self._maybe_fail()
        record = TxtRecord(str(next(self._ids)), subdomain, value)
        self.records[f"{zone_name}/{record.record_id}"] = record
        self.log.append(("create", zone_name, subdomain, value))

    async def remove_record(self, zone_name, record):
        self._maybe_fail()
        del self.records[f"{zone_name}/{record.record_id}"]
        self.log.append(("delete", zone_name, record.subdomain, record.value))

    def txt(self, zone_name: str, subdomain: str) -> list[str]:
        return [
            r.value
            for key, r in self.records.items()
            if key.startswith(f"{zone_name}/") and r.subdomain == subdomain
        ]


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture()
def memory_provider() -> MemoryProvider:
    return MemoryProvider()


@pytest.fixture()
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
