"""Abstract base class and value types for provider request signers.

A signer turns a :class:`SigningRequest` into the set of headers that
must accompany it on the wire, ``Authorization`` included.  Signing is a
pure function of its inputs: the same request, timestamp and secret
always produce the same signature.

Both built-in schemes share the same canonical request layout::

    METHOD
    /
    <canonical query>
    <canonical headers, one "name:value\\n" per header>
    <semicolon-joined signed header names>
    <hex sha256 of the body>

and differ in header selection, value normalisation and key derivation.
"""

from __future__ import annotations

import abc
import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar

from certpilot.errors import SigningInputInvalid

log = logging.getLogger(__name__)

_SUPPORTED_METHODS = frozenset({"GET", "POST"})


def sha256_hex(value: str | bytes) -> str:
    """Return the lowercase hex SHA-256 digest of *value*."""
    if isinstance(value, str):
        value = value.encode("utf-8")
    return hashlib.sha256(value).hexdigest()


def hmac_sha256(key: str | bytes, message: str) -> bytes:
    """Return the raw HMAC-SHA256 of *message* under *key*."""
    if isinstance(key, str):
        key = key.encode("utf-8")
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


@dataclass(frozen=True)
class SigningRequest:
    """Everything a signer needs to know about an outgoing request.

    Attributes
    ----------
    method:
        HTTP method, case-insensitive.
    host:
        API endpoint host name.
    headers:
        Headers as they will be sent.  Name casing is irrelevant for
        signing; value casing is preserved on the wire.
    params:
        Query-string parameters (unencoded).
    body:
        Exact request body text, empty for ``GET``.
    timestamp:
        Unix time in whole seconds.

    """

    method: str
    host: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    timestamp: int = 0


@dataclass(frozen=True)
class CanonicalRequest:
    """Normalised signing input.  Built once per signing call, never mutated."""

    method: str
    path: str
    query: str
    headers: tuple[tuple[str, str], ...]
    payload_hash: str

    @property
    def signed_headers(self) -> str:
        """Semicolon-joined lower-case names of the signed headers."""
        return ";".join(name for name, _ in self.headers)

    @property
    def canonical_headers(self) -> str:
        return "".join(f"{name}:{value}\n" for name, value in self.headers)

    def to_string(self) -> str:
        return "\n".join(
            [
                self.method,
                self.path,
                self.query,
                self.canonical_headers,
                self.signed_headers,
                self.payload_hash,
            ],
        )

    @property
    def digest(self) -> str:
        """Hex SHA-256 of the canonical request string."""
        return sha256_hex(self.to_string())


class RequestSigner(abc.ABC):
    """Base class for provider request signers.

    Subclasses set :attr:`algorithm` and implement
    :meth:`canonical_request` and :meth:`authorization`.

    Parameters
    ----------
    secret_id:
        Public access key identifier.
    secret_key:
        Shared secret used as HMAC key material.  An empty secret is
        accepted and yields a well-formed signature that the provider
        will reject.

    """

    algorithm: ClassVar[str]

    def __init__(self, secret_id: str, secret_key: str) -> None:
        self.secret_id = secret_id
        self.secret_key = secret_key

    def prepare_headers(self, request: SigningRequest) -> dict[str, str]:
        """Return the headers that will be sent, and signed, for *request*."""
        headers = dict(request.headers)
        if not any(name.lower() == "host" for name in headers):
            headers["Host"] = request.host
        return headers

    @abc.abstractmethod
    def canonical_request(
        self,
        request: SigningRequest,
        headers: dict[str, str],
    ) -> CanonicalRequest:
        """Build the canonical representation of *request* sent with *headers*."""

    @abc.abstractmethod
    def authorization(self, request: SigningRequest, canonical: CanonicalRequest) -> str:
        """Compute the ``Authorization`` header value."""

    def sign(self, request: SigningRequest) -> dict[str, str]:
        """Return the headers to send with *request*, ``Authorization`` included.

        Raises
        ------
        SigningInputInvalid
            If the method is unsupported, the timestamp is not whole
            seconds, or the host is missing.

        """
        self._check(request)
        headers = self.prepare_headers(request)
        canonical = self.canonical_request(request, headers)
        headers["Authorization"] = self.authorization(request, canonical)
        return headers

    @staticmethod
    def _check(request: SigningRequest) -> None:
        method = request.method.upper()
        if method not in _SUPPORTED_METHODS:
            msg = f"Cannot sign HTTP method '{request.method}'"
            raise SigningInputInvalid(msg)
        if not isinstance(request.timestamp, int) or request.timestamp < 0:
            msg = f"Signing timestamp must be whole non-negative seconds, got {request.timestamp!r}"
            raise SigningInputInvalid(msg)
        if not request.host:
            msg = "Signing request has no host"
            raise SigningInputInvalid(msg)
