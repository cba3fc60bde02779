"""On-disk storage of issued certificates.

Layout::

    <work_directory>/certificates/[staging-]<common-name>-<hash8>/
        fullchain.pem
        privkey.pem

``<common-name>`` is the first domain name with ``*`` replaced by
``_``; ``<hash8>`` is the last 8 hex digits of the SHA-256 of the
``|``-joined domain list, so different SAN sets never share a directory.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from certpilot.acme.csr import certificate_not_after

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)

CERTIFICATE_FILENAME = "fullchain.pem"
KEY_FILENAME = "privkey.pem"


def common_name(domain_names: Sequence[str]) -> str:
    """Return a filesystem-safe name for a certificate's domain list."""
    return (domain_names[0] if domain_names else "").replace("*", "_")


def certificate_dir_name(domain_names: Sequence[str], *, staging: bool) -> str:
    prefix = "staging-" if staging else ""
    digest = hashlib.sha256("|".join(domain_names).encode("utf-8")).hexdigest()[-8:]
    return f"{prefix}{common_name(domain_names)}-{digest}"


@dataclass(frozen=True)
class StoredCertificate:
    """A certificate chain and its private key as saved on disk."""

    certificate: bytes
    key: bytes
    path: Path
    key_path: Path

    @property
    def not_after(self) -> datetime:
        return certificate_not_after(self.certificate)


class CertificateStore:
    """Read and write certificates under one work directory.

    Parameters
    ----------
    work_directory:
        Root directory; certificates live in its ``certificates/`` child.
    staging:
        Keep staging certificates apart from production ones.

    """

    def __init__(self, work_directory: str | Path, *, staging: bool = False) -> None:
        self.root = Path(work_directory) / "certificates"
        self.staging = staging

    def directory_for(self, domain_names: Sequence[str]) -> Path:
        return self.root / certificate_dir_name(domain_names, staging=self.staging)

    def load(self, domain_names: Sequence[str]) -> StoredCertificate | None:
        """Return the stored certificate for *domain_names*, or ``None``."""
        directory = self.directory_for(domain_names)
        cert_path = directory / CERTIFICATE_FILENAME
        key_path = directory / KEY_FILENAME
        if not cert_path.is_file() or not key_path.is_file():
            return None
        return StoredCertificate(
            certificate=cert_path.read_bytes(),
            key=key_path.read_bytes(),
            path=cert_path,
            key_path=key_path,
        )

    def save(
        self,
        domain_names: Sequence[str],
        certificate: str | bytes,
        key: str | bytes,
    ) -> StoredCertificate:
        """Replace the stored chain and key.

        Both files are staged next to their targets first, then moved
        into place key first and chain last.  If the key cannot be
        written the previous pair is left untouched; if the chain cannot
        be moved in after the key, the chain is removed so the next run
        re-issues instead of keeping a mismatched pair.
        """
        directory = self.directory_for(domain_names)
        directory.mkdir(parents=True, exist_ok=True)

        cert_bytes = certificate.encode("ascii") if isinstance(certificate, str) else certificate
        key_bytes = key.encode("ascii") if isinstance(key, str) else key

        cert_path = directory / CERTIFICATE_FILENAME
        key_path = directory / KEY_FILENAME

        tmp_key = _write_temp(key_path, key_bytes, mode=0o600)
        try:
            tmp_cert = _write_temp(cert_path, cert_bytes, mode=0o644)
        except OSError:
            tmp_key.unlink(missing_ok=True)
            raise

        try:
            os.replace(tmp_key, key_path)
        except OSError:
            tmp_key.unlink(missing_ok=True)
            tmp_cert.unlink(missing_ok=True)
            raise
        try:
            os.replace(tmp_cert, cert_path)
        except OSError:
            log.error(  # noqa: TRY400
                "Could not install %s after replacing its key; removing the stale chain",
                cert_path,
            )
            tmp_cert.unlink(missing_ok=True)
            cert_path.unlink(missing_ok=True)
            raise

        log.info("Saved certificate to %s", cert_path)
        return StoredCertificate(
            certificate=cert_bytes,
            key=key_bytes,
            path=cert_path,
            key_path=key_path,
        )


def _write_temp(target: Path, data: bytes, *, mode: int) -> Path:
    """Write *data* to a fresh temp file beside *target* and return its path."""
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        try:
            os.chmod(tmp_path, mode)  # noqa: PTH101
        except OSError as exc:
            log.warning("Could not set permissions on %s: %s", target, exc)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
    return tmp_path


def needs_renewal(
    stored: StoredCertificate | None,
    renew_before_days: int,
    *,
    now: datetime | None = None,
) -> bool:
    """Return whether *stored* is missing, unreadable or expires within the renewal window."""
    if stored is None:
        return True
    try:
        not_after = stored.not_after
    except ValueError as exc:
        log.warning("Stored certificate %s cannot be parsed, re-issuing: %s", stored.path, exc)
        return True
    now = now or datetime.now(UTC)
    if not_after - now > timedelta(days=renew_before_days):
        log.info(
            "Certificate %s is valid until %s; no renewal needed",
            stored.path,
            not_after.isoformat(),
        )
        return False
    return True
