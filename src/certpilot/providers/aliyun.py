"""Alibaba Cloud DNS provider (API version 2015-01-09).

RPC-style API: every action is a ``GET`` with its parameters in the
query string, signed with ACS3-HMAC-SHA256.  Failures are reported with
a non-200 status and a JSON body carrying ``Code`` and ``Message``.

Reference: https://help.aliyun.com/zh/dns/api-alidns-2015-01-09-overview
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import Any, ClassVar

import httpx

from certpilot.errors import ApiCallFailed
from certpilot.logging.sanitize import sanitize_for_logs
from certpilot.providers.base import DnsProvider, TxtRecord, Zone
from certpilot.signing import Acs3Signer, SigningRequest
from certpilot.signing.acs3 import canonical_query_string

log = logging.getLogger(__name__)

API_HOST = "alidns.cn-hangzhou.aliyuncs.com"
API_VERSION = "2015-01-09"

_PAGE_SIZE = 100


class AliyunProvider(DnsProvider):
    """Alidns client authenticated with an ``AccessKeyId``/``AccessKeySecret``."""

    name = "aliyun"
    retryable_codes: ClassVar[frozenset[str]] = frozenset(
        {
            "Throttling",
            "Throttling.User",
            "Throttling.Api",
            "ServiceUnavailable",
            "InternalError",
            "LastOperationNotFinished",
        },
    )

    def __init__(self, *args: Any, **kwargs: Any) -> None:  # noqa: ANN401
        super().__init__(*args, **kwargs)
        self._signer = Acs3Signer(self.credential.secret_id, self.credential.secret_key)

    async def call(self, action: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Invoke *action* and return the decoded response body.

        Raises
        ------
        ApiCallFailed
            On transport failure or any non-200 response.

        """
        params = {k: v for k, v in (params or {}).items() if v is not None}
        timestamp = self._timestamp()
        request = SigningRequest(
            method="GET",
            host=API_HOST,
            headers={
                "host": API_HOST,
                "x-acs-action": action,
                "x-acs-version": API_VERSION,
                "x-acs-date": datetime.fromtimestamp(timestamp, tz=UTC).strftime(
                    "%Y-%m-%dT%H:%M:%SZ",
                ),
                "x-acs-signature-nonce": uuid.uuid4().hex,
            },
            params=params,
            timestamp=timestamp,
        )
        headers = self._signer.sign(request)
        log.debug("Alidns %s %s", action, sanitize_for_logs(params))

        query = canonical_query_string(params)
        url = f"https://{API_HOST}/?{query}" if query else f"https://{API_HOST}/"
        response = await self._send(httpx.Request("GET", url, headers=headers))

        if response.status_code != httpx.codes.OK:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            code = body.get("Code")
            message = body.get("Message") or f"HTTP {response.status_code}"
            log.error(
                "Alidns %s failed: %s (code=%s, request_id=%s)",
                action,
                message,
                code,
                body.get("RequestId"),
            )
            msg = f"Alidns {action} failed: {message}"
            raise ApiCallFailed(
                msg,
                code=code,
                status=response.status_code,
                retryable=self._is_retryable(code, response.status_code),
            )
        return self._decode(response, action)

    async def list_zones(self) -> list[Zone]:
        zones: list[Zone] = []
        page = 1
        while True:
            payload = await self.call(
                "DescribeDomains",
                {"PageNumber": page, "PageSize": _PAGE_SIZE},
            )
            items = (payload.get("Domains") or {}).get("Domain") or []
            # Alidns does not expose a disabled or undelegated state here.
            zones.extend(
                Zone(name=item["DomainName"], zone_id=item.get("DomainId")) for item in items
            )
            total = payload.get("TotalCount", len(zones))
            if not items or len(zones) >= total:
                break
            page += 1
        log.debug("Alidns reports %d zone(s)", len(zones))
        return zones

    async def list_records(self, zone_name: str, subdomain: str) -> list[TxtRecord]:
        # RRKeyWord is a fuzzy match; exact filtering happens in delete_record.
        records: list[TxtRecord] = []
        seen = 0
        page = 1
        while True:
            payload = await self.call(
                "DescribeDomainRecords",
                {
                    "DomainName": zone_name,
                    "RRKeyWord": subdomain,
                    "TypeKeyWord": "TXT",
                    "PageNumber": page,
                    "PageSize": _PAGE_SIZE,
                },
            )
            items = (payload.get("DomainRecords") or {}).get("Record") or []
            seen += len(items)
            records.extend(
                TxtRecord(
                    record_id=str(item["RecordId"]),
                    subdomain=item.get("RR", ""),
                    value=item.get("Value", ""),
                )
                for item in items
                if item.get("Type", "TXT") == "TXT"
            )
            total = payload.get("TotalCount", seen)
            if not items or seen >= total:
                break
            page += 1
        return records

    async def add_record(self, zone_name: str, subdomain: str, value: str) -> None:
        payload = await self.call(
            "AddDomainRecord",
            {
                "DomainName": zone_name,
                "RR": subdomain,
                "Type": "TXT",
                "Value": value,
                "TTL": self.ttl,
            },
        )
        log.debug("Alidns created record %s", payload.get("RecordId"))

    async def remove_record(self, zone_name: str, record: TxtRecord) -> None:  # noqa: ARG002
        await self.call("DeleteDomainRecord", {"RecordId": record.record_id})
