"""Tests for the bundled configuration JSON schema."""

from __future__ import annotations

import json

import pytest
from jsonschema import ValidationError, validate

from certpilot.config.certpilot_config import _SCHEMA_PATH


@pytest.fixture(scope="module")
def schema() -> dict:
    return json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))


def _config(**overrides) -> dict:
    cfg = {
        "challenges": {
            "ali": {"provider": "aliyun", "secret_id": "LTAI", "secret_key": "s"},
        },
        "certificates": [{"csr": ["example.com"], "challenge": "ali"}],
    }
    cfg.update(overrides)
    return cfg


class TestValid:
    def test_minimal(self, schema):
        validate(instance=_config(), schema=schema)

    def test_all_sections(self, schema):
        cfg = _config(
            staging=True,
            work_directory="/var/lib/certpilot",
            account={"email": "ops@example.com", "storage_path": "/var/lib/certpilot/account"},
            dns01={
                "operation_interval_seconds": 1,
                "cleanup_jitter_seconds": 0,
                "request_timeout_seconds": 10,
                "propagation_delay_seconds": 30,
            },
            renewal={"renew_before_days": 14},
            logging={"level": "DEBUG", "format": "text", "file": "certpilot.log"},
        )
        validate(instance=cfg, schema=schema)

    def test_preset_override_form(self, schema):
        cfg = _config(certificates=[{"csr": ["example.com"], "challenge": {"preset": "ali", "ttl": 900}}])
        validate(instance=cfg, schema=schema)


class TestInvalid:
    def test_certificates_required(self, schema):
        with pytest.raises(ValidationError, match="'certificates' is a required property"):
            validate(instance={}, schema=schema)

    def test_empty_domain_list(self, schema):
        cfg = _config(certificates=[{"csr": [], "challenge": "ali"}])
        with pytest.raises(ValidationError):
            validate(instance=cfg, schema=schema)

    def test_ttl_out_of_range(self, schema):
        cfg = _config()
        cfg["challenges"]["ali"]["ttl"] = 0
        with pytest.raises(ValidationError, match="minimum"):
            validate(instance=cfg, schema=schema)

    def test_unknown_dns01_key(self, schema):
        with pytest.raises(ValidationError, match="additionalProperties|Additional properties"):
            validate(instance=_config(dns01={"interval": 1}), schema=schema)

    def test_bad_log_format(self, schema):
        with pytest.raises(ValidationError):
            validate(instance=_config(logging={"format": "xml"}), schema=schema)

    def test_unsupported_key_size(self, schema):
        cfg = _config(certificates=[{"csr": {"domain_names": ["example.com"], "key": 1024}, "challenge": "ali"}])
        with pytest.raises(ValidationError):
            validate(instance=cfg, schema=schema)
