"""Tests for certpilot.providers.tencent: DNSPod client."""

from __future__ import annotations

import asyncio
import logging

import httpx
import pytest

from certpilot.core.types import DeleteOutcome
from certpilot.errors import ApiCallFailed
from certpilot.providers.base import ProviderCredential
from certpilot.providers.tencent import API_HOST, TencentCloudProvider
from tests.providers.conftest import FIXED_TIME, json_response, request_json


def _provider(api, ttl: int = 600) -> TencentCloudProvider:
    credential = ProviderCredential("tencent-cloud", "AKIDEXAMPLE", "SecretKeyExample", ttl=ttl)
    return TencentCloudProvider(credential, client=api.client(), clock=lambda: FIXED_TIME)


def _ok(data: dict) -> httpx.Response:
    return json_response({"Response": {"RequestId": "req-1", **data}})


def _error(code: str, message: str = "boom") -> httpx.Response:
    return json_response(
        {"Response": {"RequestId": "req-1", "Error": {"Code": code, "Message": message}}},
    )


class TestRequestShape:
    def test_signed_post(self, tencent_api):
        tencent_api.responses["DescribeDomainList"] = _ok(
            {"DomainList": [], "DomainCountInfo": {"AllTotal": 0}},
        )
        asyncio.run(_provider(tencent_api).list_zones())

        request = tencent_api.requests[0]
        assert request.method == "POST"
        assert request.url.host == API_HOST
        assert request.headers["X-TC-Version"] == "2021-03-23"
        assert request.headers["X-TC-Timestamp"] == "1700000000"
        assert request.headers["Authorization"].startswith(
            "TC3-HMAC-SHA256 Credential=AKIDEXAMPLE/2023-11-14/dnspod/tc3_request,",
        )
        assert request_json(request) == {"Offset": 0, "Limit": 100}


class TestListZones:
    def test_status_flags(self, tencent_api):
        tencent_api.responses["DescribeDomainList"] = _ok(
            {
                "DomainList": [
                    {"DomainId": 1, "Name": "example.com", "Status": "ENABLE", "DNSStatus": ""},
                    {"DomainId": 2, "Name": "paused.com", "Status": "PAUSE", "DNSStatus": ""},
                    {
                        "DomainId": 3,
                        "Name": "elsewhere.com",
                        "Status": "ENABLE",
                        "DNSStatus": "DNSERROR",
                    },
                ],
                "DomainCountInfo": {"AllTotal": 3},
            },
        )
        zones = asyncio.run(_provider(tencent_api).list_zones())

        by_name = {z.name: z for z in zones}
        assert by_name["example.com"].enabled and by_name["example.com"].delegated
        assert by_name["example.com"].zone_id == "1"
        assert not by_name["paused.com"].enabled
        assert by_name["elsewhere.com"].enabled
        assert not by_name["elsewhere.com"].delegated

    def test_pagination(self, tencent_api):
        page = [{"Name": f"z{i}.com", "Status": "ENABLE", "DNSStatus": ""} for i in range(100)]
        tencent_api.responses["DescribeDomainList"] = [
            _ok({"DomainList": page, "DomainCountInfo": {"AllTotal": 101}}),
            _ok(
                {
                    "DomainList": [{"Name": "last.com", "Status": "ENABLE", "DNSStatus": ""}],
                    "DomainCountInfo": {"AllTotal": 101},
                },
            ),
        ]
        zones = asyncio.run(_provider(tencent_api).list_zones())

        assert len(zones) == 101
        assert request_json(tencent_api.requests[1])["Offset"] == 100


class TestErrors:
    def test_vendor_error(self, tencent_api):
        tencent_api.responses["DescribeDomainList"] = _error("AuthFailure.SignatureFailure")
        with pytest.raises(ApiCallFailed) as exc_info:
            asyncio.run(_provider(tencent_api).list_zones())

        assert exc_info.value.code == "AuthFailure.SignatureFailure"
        assert not exc_info.value.retryable
        assert "code=AuthFailure.SignatureFailure" in exc_info.value.detail

    def test_rate_limit_is_retryable(self, tencent_api):
        tencent_api.responses["CreateRecord"] = _error("RequestLimitExceeded")
        with pytest.raises(ApiCallFailed) as exc_info:
            asyncio.run(_provider(tencent_api).create_record("example.com", "_acme-challenge", "v"))
        assert exc_info.value.retryable

    def test_http_error_status(self, tencent_api):
        tencent_api.responses["DescribeDomainList"] = httpx.Response(503, text="unavailable")
        with pytest.raises(ApiCallFailed) as exc_info:
            asyncio.run(_provider(tencent_api).list_zones())
        assert exc_info.value.status == 503
        assert exc_info.value.retryable

    def test_transport_error(self, tencent_api):
        def _fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        tencent_api.responses["DescribeDomainList"] = _fail
        with pytest.raises(ApiCallFailed, match="connection refused") as exc_info:
            asyncio.run(_provider(tencent_api).list_zones())
        assert exc_info.value.retryable

    def test_undecodable_body(self, tencent_api):
        tencent_api.responses["DescribeDomainList"] = httpx.Response(200, text="<html>")
        with pytest.raises(ApiCallFailed, match="undecodable"):
            asyncio.run(_provider(tencent_api).list_zones())


class TestRecords:
    def test_create_record_payload(self, tencent_api):
        tencent_api.responses["CreateRecord"] = _ok({"RecordId": 42})
        asyncio.run(
            _provider(tencent_api, ttl=300).create_record(
                "example.com",
                "_acme-challenge.www",
                "token-value",
            ),
        )

        assert request_json(tencent_api.requests[0]) == {
            "Domain": "example.com",
            "SubDomain": "_acme-challenge.www",
            "RecordType": "TXT",
            "RecordLine": "默认",
            "Value": "token-value",
            "TTL": 300,
        }

    def test_delete_matches_value(self, tencent_api):
        tencent_api.responses["DescribeRecordList"] = _ok(
            {
                "RecordList": [
                    {"RecordId": 7, "Name": "_acme-challenge", "Value": "other"},
                    {"RecordId": 8, "Name": "_acme-challenge", "Value": "mine"},
                ],
            },
        )
        tencent_api.responses["DeleteRecord"] = _ok({})

        outcome = asyncio.run(
            _provider(tencent_api).delete_record("example.com", "_acme-challenge", "mine"),
        )

        assert outcome is DeleteOutcome.DELETED
        assert tencent_api.actions() == ["DescribeRecordList", "DeleteRecord"]
        assert request_json(tencent_api.requests[0]) == {
            "Domain": "example.com",
            "Subdomain": "_acme-challenge",
            "RecordType": "TXT",
        }
        assert request_json(tencent_api.requests[1]) == {"Domain": "example.com", "RecordId": 8}

    def test_delete_no_records_is_not_found(self, tencent_api, caplog):
        tencent_api.responses["DescribeRecordList"] = _error("ResourceNotFound.NoDataOfRecord")

        with caplog.at_level(logging.DEBUG, logger="certpilot"):
            outcome = asyncio.run(
                _provider(tencent_api).delete_record("example.com", "_acme-challenge", "mine"),
            )

        assert outcome is DeleteOutcome.NOT_FOUND
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]

    def test_delete_value_mismatch_is_not_found(self, tencent_api):
        tencent_api.responses["DescribeRecordList"] = _ok(
            {"RecordList": [{"RecordId": 7, "Name": "_acme-challenge", "Value": "other"}]},
        )
        outcome = asyncio.run(
            _provider(tencent_api).delete_record("example.com", "_acme-challenge", "mine"),
        )
        assert outcome is DeleteOutcome.NOT_FOUND
        assert tencent_api.actions() == ["DescribeRecordList"]

    def test_delete_failure_propagates(self, tencent_api):
        tencent_api.responses["DescribeRecordList"] = _error("InternalError")
        with pytest.raises(ApiCallFailed):
            asyncio.run(
                _provider(tencent_api).delete_record("example.com", "_acme-challenge", "v"),
            )
