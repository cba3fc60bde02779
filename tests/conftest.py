"""Root conftest for the CertPilot test suite."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)


# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing the minimum useful config."""
    return {
        "challenges": {
            "tencent": {
                "provider": "tencent-cloud",
                "secret_id": "AKIDEXAMPLE",
                "secret_key": "SecretKeyExample",
            },
        },
        "certificates": [
            {"csr": ["example.com", "*.example.com"], "challenge": "tencent"},
        ],
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# ConfigKit singleton cleanup; autouse so every test gets a fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the CertPilotConfig singleton before and after every test."""
    from certpilot.config.certpilot_config import CertPilotConfig

    CertPilotConfig.reset()
    yield
    CertPilotConfig.reset()


# ---------------------------------------------------------------------------
# Logger cleanup; configure_logging() detaches the package logger from root
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo configure_logging() so caplog keeps seeing certpilot records."""
    import logging

    yield
    root = logging.getLogger("certpilot")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Self-signed certificates for storage and renewal tests
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_certificate():
    """Return a factory building ``(cert_pem, key_pem)`` valid for *days*."""
    from datetime import UTC, datetime, timedelta

    from cryptography import x509
    from cryptography.hazmat.primitives import hashes, serialization
    from cryptography.hazmat.primitives.asymmetric import ec
    from cryptography.x509.oid import NameOID

    def _make(domains=("example.com",), days=90):
        key = ec.generate_private_key(ec.SECP256R1())
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])])
        now = datetime.now(UTC)
        cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=days))
            .add_extension(
                x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
                critical=False,
            )
            .sign(key, hashes.SHA256())
        )
        key_pem = key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        return cert.public_bytes(serialization.Encoding.PEM), key_pem

    return _make
