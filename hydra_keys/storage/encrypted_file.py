"""
Encrypted-file backend.

Selectable in the config schema but not implemented: every operation raises
StorageNotImplementedError. It never falls back to another backend.
"""

from __future__ import annotations

from hydra_keys.errors import StorageNotImplementedError
from hydra_keys.storage.base import SecretStore


class EncryptedFileStorage(SecretStore):
    name = "encrypted-file"

    async def store(self, handle: str, value: str) -> None:
        raise StorageNotImplementedError()

    async def retrieve(self, handle: str) -> str | None:
        raise StorageNotImplementedError()

    async def delete(self, handle: str) -> None:
        raise StorageNotImplementedError()

    async def list(self) -> set[str]:
        raise StorageNotImplementedError()
