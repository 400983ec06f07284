"""
Root-level shared test fixtures.

Nothing here touches the real keychain, the real home directory or the
network: secrets go to an in-memory keyring backend, the config document to
tmp_path, and provider HTTP calls to an httpx.MockTransport.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from hydra_keys.config import Settings, reset_config
from hydra_keys.config_store import ConfigStore
from hydra_keys.lifecycle import CredentialBroker
from hydra_keys.providers.resolver import ProviderConfigResolver
from hydra_keys.registry import ProviderRegistry
from hydra_keys.schema import ProviderRecord, default_config
from hydra_keys.storage import StorageManager

TEST_SERVICE = "hydra-keys-test"


class MemoryKeyring(KeyringBackend):
    """keyring backend that keeps everything in a dict."""

    priority = 1  # type: ignore[assignment]

    def __init__(self) -> None:
        super().__init__()
        self.entries: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self.entries.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.entries[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self.entries[(service, username)]
        except KeyError:
            raise PasswordDeleteError(username) from None


class FakeApi:
    """Route table behind an httpx.MockTransport. Records every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], httpx.Response | Exception] = {}

    def add(
        self,
        method: str,
        path: str,
        *,
        status: int = 200,
        json: Any = None,
        text: str | None = None,
    ) -> None:
        if text is not None:
            self._routes[(method, path)] = httpx.Response(status, text=text)
        elif json is not None:
            self._routes[(method, path)] = httpx.Response(status, json=json)
        else:
            self._routes[(method, path)] = httpx.Response(status)

    def fail(self, method: str, path: str, error: Exception) -> None:
        self._routes[(method, path)] = error

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self._routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": {"message": f"no route {request.url.path}"}})
        if isinstance(route, Exception):
            raise route
        return route

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove hydra-keys env vars that leak between tests."""
    for key in [
        "HYDRA_KEYS_HOME",
        "HYDRA_KEYS_SERVICE_NAME",
        "HYDRA_KEYS_HTTP_TIMEOUT",
        "HYDRA_KEYS_VALIDATE_TIMEOUT",
        "HYDRA_KEYS_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def keyring_backend() -> MemoryKeyring:
    return MemoryKeyring()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(home=tmp_path / ".hydra-keys", service_name=TEST_SERVICE)


@pytest.fixture
def config_store(settings) -> ConfigStore:
    return ConfigStore(settings.config_path)


@pytest.fixture
def initialized(config_store) -> ConfigStore:
    """A config store holding the default document."""
    config_store.save(default_config())
    return config_store


@pytest.fixture
def storage(keyring_backend) -> StorageManager:
    return StorageManager(TEST_SERVICE, keyring_backend=keyring_backend)


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def resolver(config_store, storage) -> ProviderConfigResolver:
    return ProviderConfigResolver(config_store, storage)


@pytest.fixture
def registry(resolver, api) -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register_builtins(resolver, transport=api.transport)
    return registry


@pytest.fixture
def broker(registry, config_store, storage, resolver) -> CredentialBroker:
    return CredentialBroker(registry, config_store, storage, resolver)


@pytest.fixture
def configure(initialized, storage):
    """Store a service key and a configured record directly, skipping validation."""

    async def _configure(
        provider: str,
        secret: str,
        settings: dict[str, Any] | None = None,
        handle: str | None = None,
    ) -> str:
        handle = handle or f"{provider}_1700000000000"
        await storage.keychain().store(handle, secret)
        cfg = initialized.load()
        cfg.providers[provider] = ProviderRecord(
            configured=True, service_key_id=handle, config=settings
        )
        initialized.save(cfg)
        return handle

    return _configure
