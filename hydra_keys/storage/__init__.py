"""
Secret storage — pluggable backends for service credentials.

Public API:
    StorageManager.check_storage()       → probe keychain availability
    StorageManager.active(config)        → SecretStore for config.storage.backend
    StorageManager.migrate(store, name)  → copy secrets to another backend
"""

from __future__ import annotations

import logging
from typing import Any

from hydra_keys.config_store import ConfigStore
from hydra_keys.storage.base import SecretStore, StorageStatus
from hydra_keys.storage.encrypted_file import EncryptedFileStorage
from hydra_keys.storage.keychain import KeychainStorage

logger = logging.getLogger(__name__)


class StorageManager:
    """Hands out secret store backends and probes their availability."""

    def __init__(self, service_name: str = "hydra-keys", keyring_backend: Any | None = None) -> None:
        self._keychain = KeychainStorage(service_name, backend=keyring_backend)
        self._encrypted = EncryptedFileStorage()

    def keychain(self) -> KeychainStorage:
        return self._keychain

    def encrypted(self) -> EncryptedFileStorage:
        return self._encrypted

    def backend_for(self, name: str) -> SecretStore:
        if name == KeychainStorage.name:
            return self._keychain
        if name == EncryptedFileStorage.name:
            return self._encrypted
        raise ValueError(f"Unknown storage backend: {name}")

    def active(self, config: Any) -> SecretStore:
        """The store selected by an AppConfig's storage.backend."""
        return self.backend_for(config.storage.backend)

    async def check_storage(self) -> StorageStatus:
        """Probe the keychain. Failure recommends encrypted-file; it does not switch."""
        try:
            await self._keychain.list()
            return StorageStatus(available=True, backend=KeychainStorage.name)
        except Exception as e:
            logger.info("Keychain probe failed: %s", e)
            return StorageStatus(available=False, backend=EncryptedFileStorage.name, error=str(e))

    async def migrate(self, config_store: ConfigStore, target: str) -> int:
        """Copy every configured service key to `target` and switch the config to it.

        Secrets are copied before the config is touched; if any copy fails the
        config still points at the old backend. Source entries are left in place.

        Returns:
            Number of secrets copied. 0 when already on `target`.
        """
        config = config_store.load()
        current = config.storage.backend
        if current == target:
            return 0

        source = self.backend_for(current)
        dest = self.backend_for(target)
        # Both ends must be usable even when there is nothing to copy
        await source.list()
        await dest.list()

        copied = 0
        for name, record in config.providers.items():
            if not record.configured:
                continue
            value = await source.retrieve(record.service_key_id)
            if value is None:
                logger.warning(
                    "Service key %s for %s missing from %s; skipping",
                    record.service_key_id,
                    name,
                    current,
                )
                continue
            await dest.store(record.service_key_id, value)
            copied += 1

        config.storage.backend = target  # type: ignore[assignment]
        config_store.save(config)
        logger.info("Migrated %d secret(s) from %s to %s", copied, current, target)
        return copied


__all__ = [
    "EncryptedFileStorage",
    "KeychainStorage",
    "SecretStore",
    "StorageManager",
    "StorageStatus",
]
