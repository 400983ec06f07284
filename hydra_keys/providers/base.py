"""
Provider adapter contract.

Every adapter implements create_key / list_keys / validate_config. Deletion
and detail lookup are optional capabilities expressed as the KeyDeleter and
KeyInspector mixins; callers ask `provider.supports("delete_key")` instead of
calling and catching.

Adapters that talk plain HTTPS + JSON subclass HttpProvider, which owns the
httpx client, the auth header, timeouts, and error mapping.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from hydra_keys.errors import ProviderNotConfiguredError, RemoteRequestFailedError

if TYPE_CHECKING:
    from hydra_keys.providers.resolver import ProviderConfigResolver

logger = logging.getLogger(__name__)

# Shown in place of key material on every listing
MASKED_KEY = "••••"

DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_VALIDATE_TIMEOUT = 5.0


# ----------------------------------------------------------------------
# Value objects
# ----------------------------------------------------------------------


@dataclass
class CreateKeyOptions:
    name: str
    limit: float | None = None
    limit_reset: str | None = None  # daily | weekly | monthly
    expires_at: datetime | None = None
    metadata: dict[str, Any] | None = None


@dataclass
class KeyResult:
    """A provisioned key. `key` is the raw secret only when returned by create_key."""

    id: str
    name: str
    key: str
    created_at: datetime
    expires_at: datetime | None = None
    limit: float | None = None
    limit_reset: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass
class KeyUsage:
    requests: int = 0
    cost: float = 0.0


@dataclass
class KeyDetails(KeyResult):
    last_used: datetime | None = None
    usage: KeyUsage | None = None


@dataclass
class ValidationResult:
    valid: bool
    error: str | None = None


@dataclass
class ProviderConfig:
    """Resolved operating config: the service secret plus non-secret settings."""

    service_key: str
    settings: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.settings.get(key, default)

    def require(self, provider: str, key: str) -> Any:
        value = self.settings.get(key)
        if value in (None, ""):
            raise ProviderNotConfiguredError(
                provider,
                f'{provider} requires the "{key}" setting. '
                f'Run "hydra-keys provider add {provider}" to reconfigure.',
            )
        return value


@dataclass(frozen=True)
class ProviderSetting:
    """A non-secret setting an adapter asks for during `provider add`."""

    key: str
    prompt: str
    required: bool = False


# ----------------------------------------------------------------------
# Contract
# ----------------------------------------------------------------------


class Provider(ABC):
    """Uniform credential-lifecycle contract over one remote service."""

    name: ClassVar[str]
    display_name: ClassVar[str]
    version: ClassVar[str] = "1.0.0"
    keys_url: ClassVar[str | None] = None
    settings: ClassVar[tuple[ProviderSetting, ...]] = ()

    @abstractmethod
    async def create_key(self, options: CreateKeyOptions) -> KeyResult:
        """Mint a key. The result carries the raw secret exactly once."""

    @abstractmethod
    async def list_keys(self) -> list[KeyResult]:
        """Existing keys; every `key` field is MASKED_KEY."""

    @abstractmethod
    async def validate_config(self, config: ProviderConfig) -> ValidationResult:
        """Short reachability/auth check. Never raises for remote failures."""

    def supports(self, capability: str) -> bool:
        mixin = CAPABILITIES.get(capability)
        return mixin is not None and isinstance(self, mixin)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} v{self.version}>"


class KeyDeleter(ABC):
    @abstractmethod
    async def delete_key(self, key_id: str) -> None: ...


class KeyInspector(ABC):
    @abstractmethod
    async def get_key_details(self, key_id: str) -> KeyDetails: ...


CAPABILITIES: dict[str, type] = {
    "delete_key": KeyDeleter,
    "get_key_details": KeyInspector,
}


# ----------------------------------------------------------------------
# HTTP adapters
# ----------------------------------------------------------------------


class HttpProvider(Provider):
    """Base for adapters over a JSON API at a fixed base URL.

    Subclasses set `base_url`, `auth_scheme` and `validate_path`.
    """

    base_url: ClassVar[str]
    auth_scheme: ClassVar[str] = "Bearer"
    validate_path: ClassVar[str] = "/"

    def __init__(
        self,
        resolver: ProviderConfigResolver,
        *,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        validate_timeout: float = DEFAULT_VALIDATE_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._resolver = resolver
        self._timeout = timeout
        self._validate_timeout = validate_timeout
        self._transport = transport

    async def _config(self) -> ProviderConfig:
        """Resolve service key + settings. Raises ProviderNotConfiguredError before any I/O."""
        return await self._resolver.resolve(self.name)

    def _headers(self, service_key: str) -> dict[str, str]:
        return {
            "Authorization": f"{self.auth_scheme} {service_key}",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        service_key: str,
        *,
        json: Any = None,
        timeout: float | None = None,
    ) -> Any:
        """Issue one request and return the decoded JSON body (None if empty).

        Raises:
            RemoteRequestFailedError: non-2xx status or transport failure.
        """
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self._timeout,
            transport=self._transport,
        ) as client:
            try:
                resp = await client.request(
                    method, path, headers=self._headers(service_key), json=json
                )
            except httpx.HTTPError as e:
                raise RemoteRequestFailedError(str(e) or type(e).__name__) from e

            logger.debug("%s %s%s -> %d", method, self.base_url, path, resp.status_code)
            if resp.is_error:
                raise RemoteRequestFailedError(error_message(resp), status=resp.status_code)
            if not resp.content:
                return None
            try:
                return resp.json()
            except ValueError as e:
                raise RemoteRequestFailedError(
                    f"Invalid JSON from {self.display_name}", status=resp.status_code
                ) from e

    def _expect(self, body: Any, shape: type, *required: str) -> Any:
        """Reject a 2xx body that is not a `shape` or lacks a `required` key."""
        if not isinstance(body, shape) or any(key not in body for key in required):
            raise RemoteRequestFailedError(f"Unexpected response from {self.display_name}")
        return body

    async def validate_config(self, config: ProviderConfig) -> ValidationResult:
        try:
            await self._request(
                "GET", self.validate_path, config.service_key, timeout=self._validate_timeout
            )
        except RemoteRequestFailedError as e:
            return ValidationResult(valid=False, error=e.message)
        return ValidationResult(valid=True)


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


def error_message(resp: httpx.Response) -> str:
    """Pull the provider's own error text out of a failed response."""
    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])

    text = resp.text.strip()
    return text or resp.reason_phrase or f"HTTP {resp.status_code}"


def parse_timestamp(value: Any) -> datetime | None:
    """ISO-8601 strings (trailing Z allowed) or epoch seconds/milliseconds."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, int | float):
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=UTC)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None


def utcnow() -> datetime:
    return datetime.now(UTC)
