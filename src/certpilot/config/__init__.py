"""Configuration subsystem for CertPilot.

Public API::

    from certpilot.config import get_config, CertPilotConfig

    # At startup (CLI only):
    CertPilotConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    certs = cfg.settings.certificates      # typed access
    interval = cfg.get("dns01.operation_interval_seconds")
"""

from certpilot.config.certpilot_config import (
    CertPilotConfig,
    ConfigValidationError,
    get_config,
)
from certpilot.config.settings import (
    AccountSettings,
    CertificateSettings,
    CertPilotSettings,
    ChallengeSettings,
    CsrSettings,
    Dns01Settings,
    LoggingSettings,
    RenewalSettings,
    build_settings,
)

__all__ = [
    "AccountSettings",
    "CertPilotConfig",
    "CertPilotSettings",
    "CertificateSettings",
    "ChallengeSettings",
    "ConfigValidationError",
    "CsrSettings",
    "Dns01Settings",
    "LoggingSettings",
    "RenewalSettings",
    "build_settings",
    "get_config",
]
