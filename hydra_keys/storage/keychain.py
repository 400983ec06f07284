"""
OS keychain backend (macOS Keychain, Secret Service, Windows Credential Locker)
via the `keyring` library.

keyring has no portable way to enumerate credentials, so the backend keeps
its own handle index as one more entry in the same service. The index is only
used by list(); secret lookups never go through it.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from hydra_keys.errors import BackendUnavailableError
from hydra_keys.storage.base import SecretStore

logger = logging.getLogger(__name__)

INDEX_ACCOUNT = "__hydra_keys_index__"


class KeychainStorage(SecretStore):
    name = "keychain"

    def __init__(self, service_name: str = "hydra-keys", backend: Any | None = None) -> None:
        """
        Args:
            service_name: keyring service all handles live under.
            backend: explicit keyring backend instance; defaults to the
                process-wide keyring selected by the `keyring` package.
        """
        self.service_name = service_name
        self._backend = backend

    @property
    def _kr(self) -> Any:
        return self._backend if self._backend is not None else keyring

    # ------------------------------------------------------------------
    # Async surface
    # ------------------------------------------------------------------

    async def store(self, handle: str, value: str) -> None:
        await asyncio.to_thread(self._store, handle, value)

    async def retrieve(self, handle: str) -> str | None:
        return await asyncio.to_thread(self._retrieve, handle)

    async def delete(self, handle: str) -> None:
        await asyncio.to_thread(self._delete, handle)

    async def list(self) -> set[str]:
        return await asyncio.to_thread(self._list)

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def _store(self, handle: str, value: str) -> None:
        _check_handle(handle)
        try:
            self._kr.set_password(self.service_name, handle, value)
            index = self._read_index()
            if handle not in index:
                index.add(handle)
                self._write_index(index)
        except KeyringError as e:
            raise BackendUnavailableError(f"Keychain write failed: {e}") from e
        logger.debug("Stored secret %s in keychain", handle)

    def _retrieve(self, handle: str) -> str | None:
        _check_handle(handle)
        try:
            value: str | None = self._kr.get_password(self.service_name, handle)
        except KeyringError as e:
            raise BackendUnavailableError(f"Keychain read failed: {e}") from e
        return value

    def _delete(self, handle: str) -> None:
        _check_handle(handle)
        try:
            try:
                self._kr.delete_password(self.service_name, handle)
            except PasswordDeleteError:
                logger.debug("Secret %s not in keychain, nothing to delete", handle)
            index = self._read_index()
            if handle in index:
                index.discard(handle)
                self._write_index(index)
        except KeyringError as e:
            raise BackendUnavailableError(f"Keychain delete failed: {e}") from e

    def _list(self) -> set[str]:
        try:
            return self._read_index()
        except KeyringError as e:
            raise BackendUnavailableError(f"Keychain unavailable: {e}") from e

    def _read_index(self) -> set[str]:
        raw = self._kr.get_password(self.service_name, INDEX_ACCOUNT)
        if not raw:
            return set()
        try:
            return set(json.loads(raw))
        except (json.JSONDecodeError, TypeError):
            logger.warning("Keychain handle index is corrupt; treating as empty")
            return set()

    def _write_index(self, index: set[str]) -> None:
        self._kr.set_password(self.service_name, INDEX_ACCOUNT, json.dumps(sorted(index)))


def _check_handle(handle: str) -> None:
    if not handle or handle == INDEX_ACCOUNT:
        raise ValueError(f"Invalid secret handle: {handle!r}")
