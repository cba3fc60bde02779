"""Tests for certificate storage and the renewal decision."""

from __future__ import annotations

import hashlib
import os
import sys
from datetime import UTC, datetime, timedelta

import pytest
from cryptography import x509

from certpilot import certificates
from certpilot.certificates import (
    CERTIFICATE_FILENAME,
    KEY_FILENAME,
    CertificateStore,
    certificate_dir_name,
    common_name,
    needs_renewal,
)


class TestNaming:
    def test_wildcard_common_name(self):
        assert common_name(["*.example.com", "example.com"]) == "_.example.com"

    def test_dir_name_hash_suffix(self):
        domains = ["example.com", "*.example.com"]
        digest = hashlib.sha256(b"example.com|*.example.com").hexdigest()[-8:]
        assert certificate_dir_name(domains, staging=False) == f"example.com-{digest}"

    def test_staging_prefix(self):
        assert certificate_dir_name(["example.com"], staging=True).startswith("staging-example.com-")

    def test_san_order_changes_directory(self):
        a = certificate_dir_name(["example.com", "www.example.com"], staging=False)
        b = certificate_dir_name(["example.com", "api.example.com"], staging=False)
        assert a != b


class TestCertificateStore:
    def test_load_missing(self, tmp_path):
        assert CertificateStore(tmp_path).load(["example.com"]) is None

    def test_save_then_load(self, tmp_path, make_certificate):
        cert_pem, key_pem = make_certificate(("example.com", "www.example.com"))
        store = CertificateStore(tmp_path)

        saved = store.save(["example.com", "www.example.com"], cert_pem.decode("ascii"), key_pem)
        loaded = store.load(["example.com", "www.example.com"])

        assert loaded is not None
        assert loaded.path == saved.path
        assert loaded.path.name == CERTIFICATE_FILENAME
        assert loaded.key_path.name == KEY_FILENAME
        assert loaded.certificate == cert_pem
        assert loaded.key == key_pem
        san = x509.load_pem_x509_certificate(loaded.certificate).extensions.get_extension_for_class(
            x509.SubjectAlternativeName,
        )
        assert san.value.get_values_for_type(x509.DNSName) == ["example.com", "www.example.com"]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_key_permissions(self, tmp_path, make_certificate):
        cert_pem, key_pem = make_certificate()
        saved = CertificateStore(tmp_path).save(["example.com"], cert_pem, key_pem)
        assert os.stat(saved.key_path).st_mode & 0o777 == 0o600

    def test_staging_kept_apart(self, tmp_path, make_certificate):
        cert_pem, key_pem = make_certificate()
        CertificateStore(tmp_path, staging=True).save(["example.com"], cert_pem, key_pem)
        assert CertificateStore(tmp_path).load(["example.com"]) is None


class TestNeedsRenewal:
    def test_missing_certificate(self):
        assert needs_renewal(None, 30) is True

    def test_fresh_certificate(self, tmp_path, make_certificate):
        cert_pem, key_pem = make_certificate(days=90)
        stored = CertificateStore(tmp_path).save(["example.com"], cert_pem, key_pem)
        assert needs_renewal(stored, 30) is False

    def test_inside_window(self, tmp_path, make_certificate):
        cert_pem, key_pem = make_certificate(days=10)
        stored = CertificateStore(tmp_path).save(["example.com"], cert_pem, key_pem)
        assert needs_renewal(stored, 30) is True

    def test_explicit_now(self, tmp_path, make_certificate):
        cert_pem, key_pem = make_certificate(days=90)
        stored = CertificateStore(tmp_path).save(["example.com"], cert_pem, key_pem)
        later = datetime.now(UTC) + timedelta(days=80)
        assert needs_renewal(stored, 30, now=later) is True


class TestAtomicSave:
    @pytest.fixture()
    def old_pair(self, tmp_path, make_certificate):
        store = CertificateStore(tmp_path)
        cert_pem, key_pem = make_certificate(days=90)
        store.save(["example.com"], cert_pem, key_pem)
        return store, cert_pem, key_pem

    def test_key_write_failure_keeps_old_pair(self, old_pair, make_certificate, monkeypatch):
        store, old_cert, old_key = old_pair
        real_write_temp = certificates._write_temp

        def failing_write_temp(target, data, *, mode):
            if target.name == KEY_FILENAME:
                raise OSError(28, "No space left on device")
            return real_write_temp(target, data, mode=mode)

        monkeypatch.setattr(certificates, "_write_temp", failing_write_temp)
        new_cert, new_key = make_certificate(days=90)
        with pytest.raises(OSError, match="No space left"):
            store.save(["example.com"], new_cert, new_key)

        loaded = store.load(["example.com"])
        assert loaded.certificate == old_cert
        assert loaded.key == old_key
        assert sorted(p.name for p in loaded.path.parent.iterdir()) == [CERTIFICATE_FILENAME, KEY_FILENAME]

    def test_chain_write_failure_keeps_old_pair(self, old_pair, make_certificate, monkeypatch):
        store, old_cert, old_key = old_pair
        real_write_temp = certificates._write_temp

        def failing_write_temp(target, data, *, mode):
            if target.name == CERTIFICATE_FILENAME:
                raise OSError(28, "No space left on device")
            return real_write_temp(target, data, mode=mode)

        monkeypatch.setattr(certificates, "_write_temp", failing_write_temp)
        new_cert, new_key = make_certificate(days=90)
        with pytest.raises(OSError):
            store.save(["example.com"], new_cert, new_key)

        loaded = store.load(["example.com"])
        assert (loaded.certificate, loaded.key) == (old_cert, old_key)
        assert sorted(p.name for p in loaded.path.parent.iterdir()) == [CERTIFICATE_FILENAME, KEY_FILENAME]

    def test_chain_install_failure_forces_reissue(self, old_pair, make_certificate, monkeypatch):
        store, _, _ = old_pair
        real_replace = os.replace

        def failing_replace(src, dst):
            if os.path.basename(dst) == CERTIFICATE_FILENAME:
                raise PermissionError(13, "Permission denied")
            return real_replace(src, dst)

        monkeypatch.setattr(os, "replace", failing_replace)
        new_cert, new_key = make_certificate(days=90)
        with pytest.raises(PermissionError):
            store.save(["example.com"], new_cert, new_key)
        monkeypatch.undo()

        # The old chain must not survive next to the new key.
        assert store.load(["example.com"]) is None
        directory = store.directory_for(["example.com"])
        assert [p.name for p in directory.iterdir()] == [KEY_FILENAME]

    def test_no_temp_files_after_success(self, old_pair, make_certificate):
        store, _, _ = old_pair
        new_cert, new_key = make_certificate(days=60)
        saved = store.save(["example.com"], new_cert, new_key)
        assert sorted(p.name for p in saved.path.parent.iterdir()) == [CERTIFICATE_FILENAME, KEY_FILENAME]
        assert saved.path.read_bytes() == new_cert

    def test_corrupt_certificate_needs_renewal(self, tmp_path, caplog):
        directory = CertificateStore(tmp_path).directory_for(["example.com"])
        directory.mkdir(parents=True)
        (directory / CERTIFICATE_FILENAME).write_bytes(b"-----BEGIN CERTIFICATE-----\ntrunc")
        (directory / KEY_FILENAME).write_bytes(b"key")

        stored = CertificateStore(tmp_path).load(["example.com"])
        assert needs_renewal(stored, 30) is True
        assert "cannot be parsed" in caplog.text
