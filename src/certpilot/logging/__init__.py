"""Logging subsystem for CertPilot.

Public API::

    from certpilot.logging import configure_logging

    configure_logging(settings.logging)
"""

from certpilot.logging.setup import challenge_context, configure_logging

__all__ = ["challenge_context", "configure_logging"]
