"""
Error taxonomy for hydra-keys.

Every failure the broker surfaces to a caller is one of these types. None of
them are retried automatically; the CLI reports them at the command boundary.
"""

from __future__ import annotations


class HydraKeysError(Exception):
    """Base class for all hydra-keys failures."""


class NotInitializedError(HydraKeysError):
    """The config document does not exist yet."""

    def __init__(self, path: str = "") -> None:
        where = f" at {path}" if path else ""
        super().__init__(f'Configuration not found{where}. Run "hydra-keys init" first.')
        self.path = path


class SchemaViolationError(HydraKeysError):
    """The config document exists but does not match the schema."""


class UnknownProviderError(HydraKeysError):
    def __init__(self, name: str, available: list[str] | None = None) -> None:
        self.name = name
        self.available = list(available or [])
        msg = f"Unknown provider: {name}"
        if self.available:
            msg += f". Available providers: {', '.join(self.available)}"
        super().__init__(msg)


class DuplicateProviderError(HydraKeysError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Provider {name} already registered")


class UnsupportedOperationError(HydraKeysError):
    def __init__(self, provider: str, capability: str) -> None:
        self.provider = provider
        self.capability = capability
        super().__init__(f"{provider} does not support {capability}")


class ProviderNotConfiguredError(HydraKeysError):
    def __init__(self, provider: str, reason: str = "") -> None:
        self.provider = provider
        self.reason = reason
        msg = reason or (
            f'{provider} provider not configured. Run "hydra-keys provider add {provider}" first.'
        )
        super().__init__(msg)


class ProviderValidationError(HydraKeysError):
    """A service key was rejected by the provider during `provider add`."""

    def __init__(self, provider: str, error: str | None = None) -> None:
        self.provider = provider
        self.error = error
        super().__init__(f"{provider} rejected the service key: {error or 'unknown error'}")


class RemoteRequestFailedError(HydraKeysError):
    """A provider API call failed. `message` is the provider's own error text."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.message = message
        self.status = status
        prefix = f"HTTP {status}: " if status is not None else ""
        super().__init__(f"{prefix}{message}")


class BackendUnavailableError(HydraKeysError):
    """The secret store backend could not be reached."""


class StorageNotImplementedError(HydraKeysError, NotImplementedError):
    """The selected secret store backend is declared but not implemented."""

    def __init__(self, message: str = "") -> None:
        super().__init__(
            message or "Encrypted storage not yet implemented. Please use keychain storage."
        )
