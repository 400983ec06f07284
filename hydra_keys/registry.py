"""
Provider Registry — catalog of adapters available to this process.

The CLI builds one registry at process start with build_registry(): external
plugins register first, then the built-ins are added with a
register-if-absent policy, so a plugin that claims a built-in's name wins.

Usage:
    registry = build_registry(resolver, plugins=cfg.plugins)
    provider = registry.get("openrouter")
    for p in registry.list():
        print(p.name, p.display_name)
"""

from __future__ import annotations

import logging
from typing import Any

from hydra_keys.errors import DuplicateProviderError
from hydra_keys.providers import BUILTIN_PROVIDERS, Provider
from hydra_keys.providers.resolver import ProviderConfigResolver

logger = logging.getLogger(__name__)


class ProviderRegistry:
    def __init__(self) -> None:
        self._providers: dict[str, Provider] = {}
        self._builtins_registered = False

    def register(self, provider: Provider) -> None:
        """Add a provider. Registration is one-shot: a taken name raises."""
        if provider.name in self._providers:
            raise DuplicateProviderError(provider.name)
        self._providers[provider.name] = provider
        logger.debug("Registered provider %s (%s)", provider.name, type(provider).__name__)

    def register_if_absent(self, provider: Provider) -> bool:
        if provider.name in self._providers:
            logger.debug("Provider %s already registered; keeping existing", provider.name)
            return False
        self._providers[provider.name] = provider
        return True

    def register_builtins(self, resolver: ProviderConfigResolver, **client_kwargs: Any) -> None:
        """Add the built-in adapters. Runs once per registry; later calls are no-ops.

        Args:
            resolver: service credential resolver handed to each adapter.
            **client_kwargs: timeout / validate_timeout / transport for HttpProvider.
        """
        if self._builtins_registered:
            return
        for provider_cls in BUILTIN_PROVIDERS:
            self.register_if_absent(provider_cls(resolver, **client_kwargs))
        self._builtins_registered = True

    def get(self, name: str) -> Provider | None:
        return self._providers.get(name)

    def list(self) -> list[Provider]:
        return list(self._providers.values())

    def names(self) -> list[str]:
        return list(self._providers)

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)


def build_registry(
    resolver: ProviderConfigResolver,
    plugins: list[str] | None = None,
    **client_kwargs: Any,
) -> ProviderRegistry:
    """Create the process registry: plugins first, then built-ins."""
    from hydra_keys.plugins import load_plugins

    registry = ProviderRegistry()
    if plugins:
        for failure in load_plugins(registry, plugins, resolver):
            logger.warning("Plugin %s failed to load: %s", failure.module, failure.error)
    registry.register_builtins(resolver, **client_kwargs)
    return registry
