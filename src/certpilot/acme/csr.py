"""Private key and CSR generation, plus certificate inspection helpers."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import ExtensionOID, NameOID

if TYPE_CHECKING:
    from certpilot.config.settings import CsrSettings

log = logging.getLogger(__name__)

_RSA_PUBLIC_EXPONENT = 65537

PrivateKey = rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey


def load_or_generate_key(key: int | str) -> PrivateKey:
    """Return a private key.

    Parameters
    ----------
    key:
        RSA modulus size in bits to generate a fresh key, or the path of
        an existing unencrypted PEM key.

    """
    if isinstance(key, int):
        log.debug("Generating %d-bit RSA key", key)
        return rsa.generate_private_key(public_exponent=_RSA_PUBLIC_EXPONENT, key_size=key)

    path = Path(key)
    loaded = serialization.load_pem_private_key(path.read_bytes(), password=None)
    if not isinstance(loaded, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        msg = f"Unsupported private key type in '{path}': {type(loaded).__name__}"
        raise TypeError(msg)
    return loaded


def _subject(settings: CsrSettings) -> x509.Name:
    attributes = [x509.NameAttribute(NameOID.COMMON_NAME, settings.common_name)]
    for oid, value in (
        (NameOID.COUNTRY_NAME, settings.country),
        (NameOID.STATE_OR_PROVINCE_NAME, settings.province),
        (NameOID.LOCALITY_NAME, settings.city),
        (NameOID.ORGANIZATION_NAME, settings.organization),
        (NameOID.EMAIL_ADDRESS, settings.email),
    ):
        if value:
            attributes.append(x509.NameAttribute(oid, value))
    return x509.Name(attributes)


def create_csr(settings: CsrSettings) -> tuple[bytes, bytes]:
    """Build a CSR for *settings* and return ``(csr_pem, key_pem)``.

    Every domain name goes into the SAN extension; the first one is
    also the subject common name.
    """
    key = load_or_generate_key(settings.key)
    csr = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(_subject(settings))
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(d) for d in settings.domain_names]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return csr.public_bytes(serialization.Encoding.PEM), key_pem


def csr_domains(csr_pem: bytes) -> list[str]:
    """Return the DNS names in the SAN extension of *csr_pem*."""
    csr = x509.load_pem_x509_csr(csr_pem)
    try:
        san = csr.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
    except x509.ExtensionNotFound:
        return []
    return san.value.get_values_for_type(x509.DNSName)


def certificate_not_after(cert_pem: bytes) -> datetime:
    """Return the UTC expiry of the first (leaf) certificate in *cert_pem*."""
    return x509.load_pem_x509_certificate(cert_pem).not_valid_after_utc
