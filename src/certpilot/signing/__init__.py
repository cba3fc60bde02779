"""Request signing for cloud DNS provider APIs.

Exports the signer base class, the immutable signing types and the two
concrete HMAC-SHA256 schemes.
"""

from certpilot.signing.acs3 import Acs3Signer, percent_encode
from certpilot.signing.base import (
    CanonicalRequest,
    RequestSigner,
    SigningRequest,
    hmac_sha256,
    sha256_hex,
)
from certpilot.signing.tc3 import Tc3Signer

__all__ = [
    "Acs3Signer",
    "CanonicalRequest",
    "RequestSigner",
    "SigningRequest",
    "Tc3Signer",
    "hmac_sha256",
    "percent_encode",
    "sha256_hex",
]
