"""TC3-HMAC-SHA256 request signing (Tencent Cloud API v3).

Date- and service-scoped scheme: the signing key is derived by chaining
HMACs over the UTC date, the service name and a fixed request tag, so a
leaked derived key is only valid for one service on one day.

Reference: https://cloud.tencent.com/document/api/1427/56189
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from urllib.parse import quote

from certpilot.signing.base import (
    CanonicalRequest,
    RequestSigner,
    SigningRequest,
    hmac_sha256,
    sha256_hex,
)

log = logging.getLogger(__name__)

ALGORITHM = "TC3-HMAC-SHA256"
REQUEST_TAG = "tc3_request"
KEY_SEED = "TC3"

# Header subset covered by the signature, in canonical order.
SIGNED_HEADER_NAMES = ("content-type", "host", "x-tc-action")


class Tc3Signer(RequestSigner):
    """Sign requests with the TC3-HMAC-SHA256 scheme.

    Parameters
    ----------
    secret_id:
        API ``SecretId``.
    secret_key:
        API ``SecretKey``.
    service:
        Product service name embedded in the credential scope
        (e.g. ``"dnspod"``).

    """

    algorithm = ALGORITHM

    def __init__(self, secret_id: str, secret_key: str, service: str) -> None:
        super().__init__(secret_id, secret_key)
        self.service = service

    def canonical_request(
        self,
        request: SigningRequest,
        headers: dict[str, str],
    ) -> CanonicalRequest:
        lowered = {name.lower(): value for name, value in headers.items()}
        # Tencent lower-cases the whole "name:value" line, values included.
        canonical_headers = tuple(
            (name, str(lowered.get(name, "")).strip().lower()) for name in SIGNED_HEADER_NAMES
        )
        query = "&".join(
            f"{quote(str(key), safe='')}={quote(str(value), safe='')}"
            for key, value in sorted(request.params.items())
        )
        return CanonicalRequest(
            method=request.method.upper(),
            path="/",
            query=query,
            headers=canonical_headers,
            payload_hash=sha256_hex(request.body),
        )

    def credential_date(self, timestamp: int) -> str:
        """Return the UTC ``YYYY-MM-DD`` date of *timestamp*."""
        return datetime.fromtimestamp(timestamp, tz=UTC).strftime("%Y-%m-%d")

    def credential_scope(self, timestamp: int) -> str:
        return f"{self.credential_date(timestamp)}/{self.service}/{REQUEST_TAG}"

    def string_to_sign(self, timestamp: int, canonical: CanonicalRequest) -> str:
        return "\n".join(
            [
                ALGORITHM,
                str(timestamp),
                self.credential_scope(timestamp),
                canonical.digest,
            ],
        )

    def signing_key(self, timestamp: int) -> bytes:
        """Derive the per-day, per-service signing key."""
        secret_date = hmac_sha256(KEY_SEED + self.secret_key, self.credential_date(timestamp))
        secret_service = hmac_sha256(secret_date, self.service)
        return hmac_sha256(secret_service, REQUEST_TAG)

    def signature(self, timestamp: int, canonical: CanonicalRequest) -> str:
        key = self.signing_key(timestamp)
        return hmac_sha256(key, self.string_to_sign(timestamp, canonical)).hex()

    def authorization(self, request: SigningRequest, canonical: CanonicalRequest) -> str:
        signature = self.signature(request.timestamp, canonical)
        return (
            f"{ALGORITHM} "
            f"Credential={self.secret_id}/{self.credential_scope(request.timestamp)},"
            f"SignedHeaders={canonical.signed_headers},"
            f"Signature={signature}"
        )
