"""Cloud DNS provider clients.

Exports the provider base class, its value types, and the registry used
to build a provider from a challenge configuration block.
"""

from certpilot.providers.base import DnsProvider, ProviderCredential, TxtRecord, Zone
from certpilot.providers.registry import load_provider

__all__ = [
    "DnsProvider",
    "ProviderCredential",
    "TxtRecord",
    "Zone",
    "load_provider",
]
