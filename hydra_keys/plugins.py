"""
External adapter loading.

A plugin is an importable module listed in the config's `plugins` array. It
must expose a hook:

    def register_providers(registry, resolver):
        registry.register(MyProvider(resolver))

There is no discovery: only modules named in the config are imported.
"""

from __future__ import annotations

import importlib
import logging
import subprocess
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hydra_keys.providers.resolver import ProviderConfigResolver
    from hydra_keys.registry import ProviderRegistry

logger = logging.getLogger(__name__)

HOOK_NAME = "register_providers"


@dataclass(frozen=True)
class PluginFailure:
    module: str
    error: str


def load_plugins(
    registry: ProviderRegistry,
    module_names: list[str],
    resolver: ProviderConfigResolver,
) -> list[PluginFailure]:
    """Import each plugin module and run its registration hook.

    Returns the plugins that failed; a broken plugin never stops the others.
    """
    failures: list[PluginFailure] = []
    for module_name in module_names:
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            failures.append(PluginFailure(module_name, f"import failed: {e}"))
            continue

        hook = getattr(module, HOOK_NAME, None)
        if not callable(hook):
            failures.append(PluginFailure(module_name, f"missing {HOOK_NAME}() hook"))
            continue

        before = set(registry.names())
        try:
            hook(registry, resolver)
        except Exception as e:
            failures.append(PluginFailure(module_name, str(e)))
            continue
        added = sorted(set(registry.names()) - before)
        logger.info("Plugin %s registered: %s", module_name, ", ".join(added) or "nothing")
    return failures


def pip_install(package: str) -> int:
    """Install a plugin distribution into the running interpreter's environment."""
    logger.info("Installing plugin package %s", package)
    result = subprocess.run(
        [sys.executable, "-m", "pip", "install", package],
        check=False,
    )
    return result.returncode


def pip_uninstall(package: str) -> int:
    logger.info("Uninstalling plugin package %s", package)
    result = subprocess.run(
        [sys.executable, "-m", "pip", "uninstall", "-y", package],
        check=False,
    )
    return result.returncode
