"""
Config document schema.

The on-disk document uses camelCase field names; Python code uses the
snake_case attribute names. Optional fields take the defaults declared here.

    {
      "version": "1",
      "storage": {"backend": "keychain"},
      "providers": {
        "openrouter": {"configured": true, "serviceKeyId": "openrouter_1700000000000"}
      },
      "plugins": [],
      "defaults": {"provider": "openrouter", "keyLimit": 100, "limitReset": "monthly"}
    }
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SCHEMA_VERSION = "1"
SUPPORTED_VERSIONS = frozenset({SCHEMA_VERSION})

StorageBackendName = Literal["keychain", "encrypted-file"]
LimitReset = Literal["daily", "weekly", "monthly"]

STORAGE_BACKENDS: tuple[str, ...] = ("keychain", "encrypted-file")
LIMIT_RESETS: tuple[str, ...] = ("daily", "weekly", "monthly")


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class StorageSettings(_Document):
    backend: StorageBackendName = "keychain"


class ProviderRecord(_Document):
    """Per-provider entry. `service_key_id` is a handle, never the secret."""

    configured: bool
    service_key_id: str = Field(alias="serviceKeyId")
    config: dict[str, Any] | None = None


class Defaults(_Document):
    provider: str | None = None
    key_limit: int | float | None = Field(default=None, alias="keyLimit")
    limit_reset: LimitReset | None = Field(default=None, alias="limitReset")


class AppConfig(_Document):
    version: str = SCHEMA_VERSION
    storage: StorageSettings
    providers: dict[str, ProviderRecord]
    plugins: list[str] = Field(default_factory=list)
    defaults: Defaults | None = None

    @field_validator("version")
    @classmethod
    def _known_version(cls, v: str) -> str:
        if v not in SUPPORTED_VERSIONS:
            raise ValueError(f"unsupported config version {v!r}")
        return v

    def to_document(self) -> dict[str, Any]:
        """Serialize to the JSON-ready on-disk shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def default_config(backend: str = "keychain") -> AppConfig:
    """The document written by `hydra-keys init`."""
    return AppConfig.model_validate(
        {
            "version": SCHEMA_VERSION,
            "storage": {"backend": backend},
            "providers": {},
            "plugins": [],
            "defaults": {
                "provider": "openrouter",
                "keyLimit": 100,
                "limitReset": "monthly",
            },
        }
    )
