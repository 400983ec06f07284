"""
Credential lifecycle — the glue between registry, adapters and the stores.

Every key operation follows the same steps:
    1. look the provider up in the registry (UnknownProviderError)
    2. check optional capabilities (UnsupportedOperationError)
    3. the adapter resolves its service key + settings (ProviderNotConfiguredError)
    4. the adapter calls the remote API (RemoteRequestFailedError, never retried)
    5. shape the result; read paths never write to either store

Only add_provider / remove_provider write. add_provider stores the secret
before the config record that points at it; remove_provider drops the record
before the secret. A crash in between can orphan a secret but never leaves a
record pointing at nothing.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from hydra_keys.config_store import ConfigStore
from hydra_keys.errors import (
    HydraKeysError,
    ProviderNotConfiguredError,
    ProviderValidationError,
    UnknownProviderError,
    UnsupportedOperationError,
)
from hydra_keys.providers.base import (
    MASKED_KEY,
    CreateKeyOptions,
    KeyDetails,
    KeyResult,
    Provider,
    ProviderConfig,
    ValidationResult,
    utcnow,
)
from hydra_keys.providers.resolver import ProviderConfigResolver
from hydra_keys.registry import ProviderRegistry
from hydra_keys.schema import ProviderRecord
from hydra_keys.storage import StorageManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderStatus:
    name: str
    display_name: str
    version: str
    configured: bool
    service_key_id: str | None = None


class CredentialBroker:
    def __init__(
        self,
        registry: ProviderRegistry,
        config_store: ConfigStore,
        storage: StorageManager,
        resolver: ProviderConfigResolver | None = None,
    ) -> None:
        self.registry = registry
        self.config_store = config_store
        self.storage = storage
        self.resolver = resolver or ProviderConfigResolver(config_store, storage)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def provider(self, name: str) -> Provider:
        provider = self.registry.get(name)
        if provider is None:
            raise UnknownProviderError(name, self.registry.names())
        return provider

    def _require(self, provider: Provider, capability: str) -> None:
        if not provider.supports(capability):
            raise UnsupportedOperationError(provider.display_name, capability)

    # ------------------------------------------------------------------
    # Key operations
    # ------------------------------------------------------------------

    async def create_key(self, provider_name: str, options: CreateKeyOptions) -> KeyResult:
        provider = self.provider(provider_name)
        result = await provider.create_key(options)
        logger.info("Created %s key %s (%s)", provider_name, result.id, result.name)
        return result

    async def list_keys(self, provider_name: str) -> list[KeyResult]:
        provider = self.provider(provider_name)
        keys = await provider.list_keys()
        return [_masked(k) for k in keys]

    async def delete_key(self, provider_name: str, key_id: str) -> None:
        provider = self.provider(provider_name)
        self._require(provider, "delete_key")
        await provider.delete_key(key_id)  # type: ignore[attr-defined]
        logger.info("Deleted %s key %s", provider_name, key_id)

    async def get_key_details(self, provider_name: str, key_id: str) -> KeyDetails:
        provider = self.provider(provider_name)
        self._require(provider, "get_key_details")
        details: KeyDetails = await provider.get_key_details(key_id)  # type: ignore[attr-defined]
        return _masked(details)

    async def export_keys(self, provider_name: str) -> dict[str, Any]:
        provider = self.provider(provider_name)
        keys = await self.list_keys(provider_name)
        return export_document(provider, keys)

    # ------------------------------------------------------------------
    # Provider configuration
    # ------------------------------------------------------------------

    async def validate_provider(
        self, provider_name: str, service_key: str | None = None, settings: dict[str, Any] | None = None
    ) -> ValidationResult:
        """Check a candidate service key, or the stored one when none is given."""
        provider = self.provider(provider_name)
        if service_key is None:
            config = await self.resolver.resolve(provider_name)
        else:
            config = ProviderConfig(service_key=service_key, settings=dict(settings or {}))
        return await provider.validate_config(config)

    def provider_status(self) -> list[ProviderStatus]:
        records: dict[str, ProviderRecord] = {}
        if self.config_store.exists():
            records = self.config_store.load().providers
        statuses = []
        for p in self.registry.list():
            record = records.get(p.name)
            statuses.append(
                ProviderStatus(
                    name=p.name,
                    display_name=p.display_name,
                    version=p.version,
                    configured=bool(record and record.configured),
                    service_key_id=record.service_key_id if record else None,
                )
            )
        return statuses

    async def add_provider(
        self,
        provider_name: str,
        service_key: str,
        settings: dict[str, Any] | None = None,
        *,
        validate: bool = True,
    ) -> ProviderRecord:
        """Store a service key and point the provider's config record at it."""
        provider = self.provider(provider_name)
        if not service_key.strip():
            raise ProviderNotConfiguredError(provider_name, "Service key is empty.")
        settings = {k: v for k, v in (settings or {}).items() if v not in (None, "")}
        for setting in provider.settings:
            if setting.required and setting.key not in settings:
                raise ProviderNotConfiguredError(
                    provider_name, f'{provider.display_name} requires the "{setting.key}" setting.'
                )

        config = self.config_store.load()

        if validate:
            result = await provider.validate_config(
                ProviderConfig(service_key=service_key, settings=settings)
            )
            if not result.valid:
                raise ProviderValidationError(provider_name, result.error)

        store = self.storage.active(config)
        handle = service_key_handle(provider_name)
        await store.store(handle, service_key)

        previous = config.providers.get(provider_name)
        record = ProviderRecord(configured=True, service_key_id=handle, config=settings or None)
        config.providers[provider_name] = record
        self.config_store.save(config)
        logger.info("Configured provider %s with handle %s", provider_name, handle)

        if previous is not None and previous.service_key_id != handle:
            try:
                await store.delete(previous.service_key_id)
            except HydraKeysError as e:
                logger.warning(
                    "Could not remove previous service key %s: %s", previous.service_key_id, e
                )
        return record

    async def remove_provider(self, provider_name: str) -> ProviderRecord:
        """Drop the provider's record, then its secret."""
        config = self.config_store.load()
        record = config.providers.get(provider_name)
        if record is None or not record.configured:
            raise ProviderNotConfiguredError(
                provider_name, f"Provider {provider_name} is not configured."
            )

        store = self.storage.active(config)
        # Fail on an unusable backend before the config is rewritten
        await store.list()
        del config.providers[provider_name]
        self.config_store.save(config)
        await store.delete(record.service_key_id)
        logger.info("Removed provider %s", provider_name)
        return record


# ----------------------------------------------------------------------
# Result shaping
# ----------------------------------------------------------------------


def service_key_handle(provider_name: str, now_ms: int | None = None) -> str:
    """Opaque secret-store handle: {provider}_{creation time in ms}."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{provider_name}_{now_ms}"


def _masked(key: Any) -> Any:
    if key.key == MASKED_KEY:
        return key
    return dataclasses.replace(key, key=MASKED_KEY)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def key_to_dict(key: KeyResult) -> dict[str, Any]:
    """Listing/export shape. Never includes key material."""
    return {
        "id": key.id,
        "name": key.name,
        "createdAt": _iso(key.created_at),
        "expiresAt": _iso(key.expires_at),
        "limit": key.limit,
        "limitReset": key.limit_reset,
    }


def export_document(provider: Provider, keys: list[KeyResult]) -> dict[str, Any]:
    return {
        "provider": provider.name,
        "displayName": provider.display_name,
        "exportedAt": utcnow().isoformat(),
        "keys": [key_to_dict(k) for k in keys],
        "total": len(keys),
    }


def new_key_document(key: KeyResult) -> dict[str, Any]:
    """What `key create --output` writes: the only place raw key material is persisted."""
    return {
        "name": key.name,
        "key": key.key,
        "createdAt": _iso(key.created_at),
        "expiresAt": _iso(key.expires_at),
    }
