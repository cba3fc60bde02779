"""DNS provider registry.

Maps the ``provider`` name of a credential to a :class:`DnsProvider`
implementation.  Built-in names resolve to the bundled clients; names of
the form ``ext:package.module.ClassName`` load a custom provider.

Usage::

    from certpilot.providers.registry import load_provider

    provider = load_provider(credential, timeout=30.0)
    zones = await provider.list_zones()
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from certpilot.core.types import ProviderName
from certpilot.providers.base import DnsProvider, ProviderCredential

log = logging.getLogger(__name__)

# Maps provider name -> (module_path, class_name)
_BUILTIN_PROVIDERS: dict[str, tuple[str, str]] = {
    ProviderName.TENCENT_CLOUD: ("certpilot.providers.tencent", "TencentCloudProvider"),
    ProviderName.ALIYUN: ("certpilot.providers.aliyun", "AliyunProvider"),
}


def builtin_provider_names() -> list[str]:
    """Return the names of the bundled providers."""
    return [str(name) for name in _BUILTIN_PROVIDERS]


def is_known_provider(name: str) -> bool:
    return name in _BUILTIN_PROVIDERS or name.startswith("ext:")


def resolve_provider_class(name: str) -> type[DnsProvider]:
    """Import and return the provider class registered under *name*.

    Raises
    ------
    ValueError
        If *name* is neither built-in nor a well-formed ``ext:`` path.
    TypeError
        If an external class is not a :class:`DnsProvider` subclass.

    """
    if name in _BUILTIN_PROVIDERS:
        mod_path, cls_name = _BUILTIN_PROVIDERS[name]
        module = importlib.import_module(mod_path)
        return getattr(module, cls_name)

    if not name.startswith("ext:"):
        msg = (
            f"Unknown DNS provider '{name}'. "
            f"Expected one of {builtin_provider_names()} or 'ext:package.module.ClassName'"
        )
        raise ValueError(msg)

    fqn = name[4:]
    module_path, _, cls_name = fqn.rpartition(".")
    if not module_path:
        msg = (
            f"Invalid external provider '{fqn}': must be fully "
            "qualified (e.g. 'mypackage.module.ClassName')"
        )
        raise ValueError(msg)

    module = importlib.import_module(module_path)
    cls = getattr(module, cls_name)
    if not (isinstance(cls, type) and issubclass(cls, DnsProvider)):
        msg = f"External provider '{fqn}' must be a subclass of DnsProvider"
        raise TypeError(msg)
    return cls


def load_provider(credential: ProviderCredential, **kwargs: Any) -> DnsProvider:  # noqa: ANN401
    """Instantiate the provider named by *credential*.

    Extra keyword arguments (``timeout``, ``client``, ``clock``) are
    passed through to the provider constructor.
    """
    cls = resolve_provider_class(credential.provider)
    provider = cls(credential, **kwargs)
    log.debug("Loaded DNS provider %s (%s)", credential.provider, cls.__qualname__)
    return provider
