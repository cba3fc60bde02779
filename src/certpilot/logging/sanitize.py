"""Sensitive data sanitization for log output.

Provides :func:`sanitize_for_logs` which redacts credentials (secret
keys, ``Authorization`` headers, signatures) and PEM bodies from data
structures before they are written to logs.  Identifiers such as the
secret id stay visible for diagnostics.
"""

from __future__ import annotations

import re
from typing import Any

REDACTED = "[REDACTED]"

# Keys whose values are secrets, compared case-insensitively
_SECRET_KEYS = frozenset(
    {
        "secret_key",
        "secretkey",
        "accesskeysecret",
        "access_key_secret",
        "authorization",
        "signature",
        "password",
    }
)

# Regex matching the base64 body inside PEM blocks
_PEM_BODY_RE = re.compile(
    r"(-----BEGIN [A-Z0-9 ]+-----)"
    r"([\s\S]*?)"
    r"(-----END [A-Z0-9 ]+-----)",
)

_SIGNATURE_RE = re.compile(r"(Signature=)[0-9a-fA-F]+")


def sanitize_pem(pem: str) -> str:
    """Replace the base64 body of PEM blocks with ``[REDACTED]``.

    Preserves BEGIN/END markers so the type of object is still visible.
    """

    def _redact(m: re.Match[str]) -> str:
        return f"{m.group(1)}\n{REDACTED}\n{m.group(3)}"

    return _PEM_BODY_RE.sub(_redact, pem)


def sanitize_for_logs(data: Any) -> Any:  # noqa: ANN401
    """Recursively sanitize sensitive material in *data*.

    Handles dicts (secret-named keys), lists, and plain strings (PEM
    blocks, ``Signature=`` fragments).  Non-sensitive data passes
    through unchanged.
    """
    if isinstance(data, dict):
        return {
            k: REDACTED if str(k).lower() in _SECRET_KEYS else sanitize_for_logs(v)
            for k, v in data.items()
        }

    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)

    if isinstance(data, str):
        if "-----BEGIN " in data:
            data = sanitize_pem(data)
        if "Signature=" in data:
            data = _SIGNATURE_RE.sub(rf"\1{REDACTED}", data)
        return data

    return data
