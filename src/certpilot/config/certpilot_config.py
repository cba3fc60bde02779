"""CertPilot configuration loader built on ConfigKit.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    CertPilotConfig(config_file="config.yaml")

    # 2. Any module retrieves it afterwards
    from certpilot.config import get_config
    cfg = get_config()
    cfg.settings.certificates  # typed access

    # 3. Dynamic access
    cfg.get("dns01.operation_interval_seconds", default=0.5)
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

from configkit import ConfigKit, ConfigKitMeta

from certpilot.config.settings import CertPilotSettings, build_settings
from certpilot.providers.registry import builtin_provider_names, is_known_provider

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_DOMAIN_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")

# Most DNS plans reject TTLs below this value.
_MIN_RECOMMENDED_TTL = 600

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: CertPilotConfig | None = None


def get_config() -> CertPilotConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`CertPilotConfig` has not been
    created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "CertPilotConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when cross-field validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _domain_problem(domain: str) -> str | None:
    """Return why *domain* is not a valid certificate name, or ``None``."""
    name = domain.lower().rstrip(".")
    if name.startswith("*."):
        name = name[2:]
    if "*" in name:
        return "wildcards are only allowed as the whole leftmost label"
    labels = name.split(".")
    if len(labels) < 2:  # noqa: PLR2004
        return "must contain at least two labels"
    if not all(_DOMAIN_LABEL_RE.match(label) for label in labels):
        return "contains an invalid label"
    return None


def _domain_names(csr: Any) -> list[str]:  # noqa: ANN401
    if isinstance(csr, list):
        return csr
    if isinstance(csr, dict):
        return csr.get("domain_names") or []
    return []


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class CertPilotConfig(ConfigKit):
    """Central configuration for CertPilot.

    Subclasses :class:`configkit.ConfigKit`.  The JSON schema is
    bundled at ``config/schema.json``; users supply only ``config_file``.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the raw dict via :pyattr:`data` /
    :pymeth:`get`.
    """

    def __init__(
        self,
        *,
        config_file: str | Path,
        schema_file: str | Path | None = None,  # noqa: ARG002
    ) -> None:
        """Initialise the configuration singleton.

        Parameters
        ----------
        config_file:
            Path to the YAML/JSON configuration file.
        schema_file:
            Ignored.  Exists only to satisfy the
            :class:`ConfigKitMeta` singleton guard.

        """
        global _instance  # noqa: PLW0603

        super().__init__(
            config_file=config_file,
            schema_file=_SCHEMA_PATH,
        )

        self._settings: CertPilotSettings = build_settings(self.data)
        _instance = self

    # -- lifecycle overrides ------------------------------------------------

    def _load(self) -> None:
        """Load config file then resolve ``${VAR}`` env-var references.

        Runs env-var resolution **before** schema validation so that
        substituted values (e.g. ``${LOG_LEVEL:-INFO}``) are checked
        against enum constraints in the schema.
        """
        super()._load()
        _resolve_env_vars(self._data)  # noqa: SLF001

    # -- typed access -------------------------------------------------------

    @property
    def settings(self) -> CertPilotSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    # -- cross-field validation ---------------------------------------------

    def additional_checks(self) -> None:  # noqa: C901, PLR0912
        """Semantic & cross-field validation.

        Called automatically by ConfigKit **after** schema validation
        passes.  Collects every problem and raises them together.
        """
        errors: list[str] = []
        warnings: list[str] = []

        presets = self.data.get("challenges") or {}
        certificates = self.data.get("certificates") or []

        # -- challenge presets --
        for name, block in presets.items():
            provider = block.get("provider", "")
            if not is_known_provider(provider):
                errors.append(
                    f"challenges.{name}.provider '{provider}' is unknown "
                    f"(expected one of {builtin_provider_names()} or 'ext:...')",
                )
            if not block.get("secret_key"):
                warnings.append(f"challenges.{name}.secret_key is empty")
            ttl = block.get("ttl")
            if ttl is not None and ttl < _MIN_RECOMMENDED_TTL:
                warnings.append(
                    f"challenges.{name}.ttl={ttl} is below {_MIN_RECOMMENDED_TTL}; "
                    "some DNS plans will reject the record",
                )

        if not certificates:
            warnings.append("No certificates configured; nothing will be issued")

        # -- certificates --
        seen: dict[frozenset[str], int] = {}
        for idx, cert in enumerate(certificates):
            where = f"certificates[{idx}]"

            names = _domain_names(cert.get("csr"))
            if not names:
                errors.append(f"{where}.csr has no domain names")
            for domain in names:
                problem = _domain_problem(domain)
                if problem:
                    errors.append(f"{where}: domain '{domain}' {problem}")

            key = frozenset(d.lower() for d in names)
            if key and key in seen:
                errors.append(
                    f"{where} repeats the domain names of certificates[{seen[key]}]",
                )
            elif key:
                seen[key] = idx

            csr = cert.get("csr")
            if isinstance(csr, dict) and isinstance(csr.get("key"), str):
                key_path = Path(csr["key"])
                if not key_path.is_file():
                    errors.append(f"{where}.csr.key file '{key_path}' does not exist")

            challenge = cert.get("challenge")
            if isinstance(challenge, dict) and "preset" not in challenge:
                provider = challenge.get("provider", "")
                if not is_known_provider(provider):
                    errors.append(f"{where}.challenge.provider '{provider}' is unknown")
            else:
                preset = challenge if isinstance(challenge, str) else (challenge or {}).get("preset")
                if preset not in presets:
                    errors.append(
                        f"{where}.challenge references unknown preset '{preset}'",
                    )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers ------------------------------------------------------------

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None
        ConfigKitMeta.reset()

    def __repr__(self) -> str:
        source = self.data.get("_source", "?")
        return f"<CertPilotConfig config_file={source}>"
