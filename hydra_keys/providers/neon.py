"""
Neon adapter — personal or organization API keys.

With an `orgId` setting keys are managed under the organization (optionally
scoped to `projectId`); without one they are the account's personal keys.
"""

from __future__ import annotations

from typing import Any

from hydra_keys.providers.base import (
    MASKED_KEY,
    CreateKeyOptions,
    HttpProvider,
    KeyDeleter,
    KeyResult,
    ProviderConfig,
    ProviderSetting,
    parse_timestamp,
    utcnow,
)


class NeonProvider(HttpProvider, KeyDeleter):
    name = "neon"
    display_name = "Neon"
    version = "1.0.0"
    keys_url = "https://console.neon.tech/app/settings/api-keys"
    settings = (
        ProviderSetting("orgId", "Neon organization ID (optional, for org keys)"),
        ProviderSetting("projectId", "Neon project ID (optional, org keys only)"),
    )

    base_url = "https://console.neon.tech/api/v2"
    validate_path = "/projects"

    async def create_key(self, options: CreateKeyOptions) -> KeyResult:
        config = await self._config()
        payload: dict[str, Any] = {"key_name": options.name}
        if config.get("orgId") and config.get("projectId"):
            payload["project_id"] = config.get("projectId")

        data = self._expect(
            await self._request("POST", _keys_path(config), config.service_key, json=payload),
            dict,
            "id",
            "key",
        )
        return KeyResult(
            id=str(data["id"]),
            name=data.get("name") or options.name,
            key=data["key"],
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
            metadata=_compact(
                {
                    "createdBy": data.get("created_by"),
                    "projectId": data.get("project_id"),
                    "orgId": config.get("orgId"),
                }
            ),
        )

    async def list_keys(self) -> list[KeyResult]:
        config = await self._config()
        items = self._expect(
            await self._request("GET", _keys_path(config), config.service_key) or [], list
        )
        items = [self._expect(item, dict, "id") for item in items]
        return [
            KeyResult(
                id=str(item["id"]),
                name=item.get("name", ""),
                key=MASKED_KEY,
                created_at=parse_timestamp(item.get("created_at")) or utcnow(),
                metadata=_compact(
                    {
                        "lastUsedAt": item.get("last_used_at"),
                        "lastUsedFromAddr": item.get("last_used_from_addr"),
                        "projectId": item.get("project_id"),
                        "createdBy": item.get("created_by"),
                    }
                ),
            )
            for item in items
            if not item.get("revoked")
        ]

    async def delete_key(self, key_id: str) -> None:
        config = await self._config()
        await self._request("DELETE", f"{_keys_path(config)}/{key_id}", config.service_key)


def _keys_path(config: ProviderConfig) -> str:
    org_id = config.get("orgId")
    if org_id:
        return f"/organizations/{org_id}/api_keys"
    return "/api_keys"


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}
