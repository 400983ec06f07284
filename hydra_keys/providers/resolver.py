"""
Service credential resolution for adapters.

Combines the service secret (fetched from the active secret store through the
record's serviceKeyId handle) with the record's non-secret settings. Fails
with ProviderNotConfiguredError before any network call when the record is
missing, unconfigured, or the handle resolves to nothing.
"""

from __future__ import annotations

import logging

from hydra_keys.config_store import ConfigStore
from hydra_keys.errors import ProviderNotConfiguredError
from hydra_keys.providers.base import ProviderConfig
from hydra_keys.storage import StorageManager

logger = logging.getLogger(__name__)


class ProviderConfigResolver:
    def __init__(self, config_store: ConfigStore, storage: StorageManager) -> None:
        self._config_store = config_store
        self._storage = storage

    async def resolve(self, provider_name: str) -> ProviderConfig:
        config = self._config_store.load()
        record = config.providers.get(provider_name)

        if record is None or not record.configured:
            raise ProviderNotConfiguredError(provider_name)

        store = self._storage.active(config)
        service_key = await store.retrieve(record.service_key_id)
        if not service_key:
            logger.warning(
                "Service key handle %s for %s resolves to nothing in %s",
                record.service_key_id,
                provider_name,
                store.name,
            )
            raise ProviderNotConfiguredError(
                provider_name,
                f"{provider_name} service key not found in {store.name} storage. "
                f'Run "hydra-keys provider add {provider_name}" to reconfigure.',
            )

        return ProviderConfig(service_key=service_key, settings=dict(record.config or {}))
