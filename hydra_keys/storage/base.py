"""Secret store contract shared by every backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class StorageStatus:
    """Result of probing the keychain at init time.

    `backend` is the recommended backend, not an automatic switch.
    """

    available: bool
    backend: str
    error: str | None = None


class SecretStore(ABC):
    """Key/value persistence for secret strings, addressed by opaque handles.

    delete() is idempotent in every backend: removing a handle that was never
    stored succeeds without error.
    """

    name: str

    @abstractmethod
    async def store(self, handle: str, value: str) -> None:
        """Insert or overwrite the secret for `handle`."""

    @abstractmethod
    async def retrieve(self, handle: str) -> str | None:
        """Return the secret, or None when the handle is absent."""

    @abstractmethod
    async def delete(self, handle: str) -> None:
        """Remove the secret; a missing handle is not an error."""

    @abstractmethod
    async def list(self) -> set[str]:
        """Handles stored under this application's namespace."""
