"""Tencent Cloud DNSPod provider (API version 2021-03-23).

Requests are ``POST``\\s of a JSON body to a single endpoint, with the
action named in ``X-TC-Action`` and authenticated by TC3-HMAC-SHA256.
Errors come back as HTTP 200 with ``Response.Error`` set.

Reference: https://cloud.tencent.com/document/api/1427/56153
"""

from __future__ import annotations

import json
import logging
from typing import Any, ClassVar

import httpx

from certpilot.errors import ApiCallFailed
from certpilot.logging.sanitize import sanitize_for_logs
from certpilot.providers.base import DnsProvider, TxtRecord, Zone
from certpilot.signing import SigningRequest, Tc3Signer

log = logging.getLogger(__name__)

API_HOST = "dnspod.tencentcloudapi.com"
API_VERSION = "2021-03-23"
SERVICE = "dnspod"

# "Default" resolution line; DNSPod rejects records without one.
DEFAULT_RECORD_LINE = "默认"

NO_RECORDS_CODE = "ResourceNotFound.NoDataOfRecord"

_PAGE_SIZE = 100


class TencentCloudProvider(DnsProvider):
    """DNSPod client authenticated with a Tencent Cloud ``SecretId``/``SecretKey``."""

    name = "tencent-cloud"
    retryable_codes: ClassVar[frozenset[str]] = frozenset(
        {
            "RequestLimitExceeded",
            "RequestLimitExceeded.UinLimitExceeded",
            "LimitExceeded.RecordTtlLimit",
            "InternalError",
            "FailedOperation.FrequencyLimit",
        },
    )

    def __init__(self, *args: Any, **kwargs: Any) -> None:  # noqa: ANN401
        super().__init__(*args, **kwargs)
        self._signer = Tc3Signer(
            self.credential.secret_id,
            self.credential.secret_key,
            SERVICE,
        )

    async def call(self, action: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """Invoke *action* and return the ``Response`` object.

        Raises
        ------
        ApiCallFailed
            On transport failure, non-200 status or a ``Response.Error``.

        """
        body = json.dumps(data or {}, separators=(",", ":"), ensure_ascii=False)
        timestamp = self._timestamp()
        request = SigningRequest(
            method="POST",
            host=API_HOST,
            headers={
                "Content-Type": "application/json",
                "Host": API_HOST,
                "X-TC-Action": action,
                "X-TC-Timestamp": str(timestamp),
                "X-TC-Version": API_VERSION,
            },
            body=body,
            timestamp=timestamp,
        )
        headers = self._signer.sign(request)
        log.debug("DNSPod %s %s", action, sanitize_for_logs(data or {}))

        response = await self._send(
            httpx.Request("POST", f"https://{API_HOST}/", headers=headers, content=body.encode()),
        )
        if response.status_code != httpx.codes.OK:
            msg = f"DNSPod {action} returned HTTP {response.status_code}"
            raise ApiCallFailed(
                msg,
                status=response.status_code,
                retryable=self._is_retryable(None, response.status_code),
            )

        payload = self._decode(response, action).get("Response")
        if not isinstance(payload, dict):
            msg = f"DNSPod {action}: response has no 'Response' object"
            raise ApiCallFailed(msg, status=response.status_code)

        error = payload.get("Error")
        if error:
            code = error.get("Code")
            message = error.get("Message", "unknown error")
            if code != NO_RECORDS_CODE:
                log.error(
                    "DNSPod %s failed: %s (code=%s, request_id=%s)",
                    action,
                    message,
                    code,
                    payload.get("RequestId"),
                )
            msg = f"DNSPod {action} failed: {message}"
            raise ApiCallFailed(msg, code=code, retryable=self._is_retryable(code, None))
        return payload

    async def list_zones(self) -> list[Zone]:
        zones: list[Zone] = []
        offset = 0
        while True:
            payload = await self.call(
                "DescribeDomainList",
                {"Offset": offset, "Limit": _PAGE_SIZE},
            )
            items = payload.get("DomainList") or []
            zones.extend(
                Zone(
                    name=item["Name"],
                    zone_id=str(item.get("DomainId", "")) or None,
                    enabled=item.get("Status") == "ENABLE",
                    # Non-empty DNSStatus means the NS records point elsewhere.
                    delegated=not item.get("DNSStatus"),
                )
                for item in items
            )
            offset += len(items)
            total = (payload.get("DomainCountInfo") or {}).get("AllTotal", offset)
            if not items or offset >= total:
                break
        log.debug("DNSPod reports %d zone(s)", len(zones))
        return zones

    async def list_records(self, zone_name: str, subdomain: str) -> list[TxtRecord]:
        try:
            payload = await self.call(
                "DescribeRecordList",
                {"Domain": zone_name, "Subdomain": subdomain, "RecordType": "TXT"},
            )
        except ApiCallFailed as exc:
            if exc.code == NO_RECORDS_CODE:
                return []
            raise
        return [
            TxtRecord(
                record_id=str(item["RecordId"]),
                subdomain=item.get("Name", subdomain),
                value=item.get("Value", ""),
            )
            for item in payload.get("RecordList") or []
        ]

    async def add_record(self, zone_name: str, subdomain: str, value: str) -> None:
        payload = await self.call(
            "CreateRecord",
            {
                "Domain": zone_name,
                "SubDomain": subdomain,
                "RecordType": "TXT",
                "RecordLine": DEFAULT_RECORD_LINE,
                "Value": value,
                "TTL": self.ttl,
            },
        )
        log.debug("DNSPod created record %s", payload.get("RecordId"))

    async def remove_record(self, zone_name: str, record: TxtRecord) -> None:
        await self.call(
            "DeleteRecord",
            {"Domain": zone_name, "RecordId": int(record.record_id)},
        )
