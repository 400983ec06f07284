"""OpenRouter adapter — provisioning keys via the /keys management API."""

from __future__ import annotations

from typing import Any

from hydra_keys.providers.base import (
    MASKED_KEY,
    CreateKeyOptions,
    HttpProvider,
    KeyDeleter,
    KeyDetails,
    KeyInspector,
    KeyResult,
    KeyUsage,
    parse_timestamp,
    utcnow,
)


class OpenRouterProvider(HttpProvider, KeyDeleter, KeyInspector):
    name = "openrouter"
    display_name = "OpenRouter"
    version = "1.0.0"
    keys_url = "https://openrouter.ai/settings/keys"

    base_url = "https://openrouter.ai/api/v1"
    validate_path = "/auth/key"

    async def create_key(self, options: CreateKeyOptions) -> KeyResult:
        config = await self._config()
        payload: dict[str, Any] = {"name": options.name}
        if options.limit is not None:
            payload["limit"] = options.limit
        if options.limit_reset:
            payload["limit_reset"] = options.limit_reset
        if options.expires_at is not None:
            payload["expires_at"] = options.expires_at.isoformat()

        body = self._expect(
            await self._request("POST", "/keys", config.service_key, json=payload), dict, "key"
        )
        data = self._expect(body.get("data") or {}, dict)
        return KeyResult(
            id=str(data.get("hash") or data.get("id", "")),
            name=data.get("name") or options.name,
            key=body["key"],
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
            expires_at=parse_timestamp(data.get("expires_at")),
            limit=data.get("limit"),
            limit_reset=data.get("limit_reset"),
        )

    async def list_keys(self) -> list[KeyResult]:
        config = await self._config()
        body = self._expect(await self._request("GET", "/keys", config.service_key) or {}, dict)
        items = self._expect(body.get("data", []), list)
        return [_to_key_result(self._expect(item, dict)) for item in items]

    async def delete_key(self, key_id: str) -> None:
        config = await self._config()
        await self._request("DELETE", f"/keys/{key_id}", config.service_key)

    async def get_key_details(self, key_id: str) -> KeyDetails:
        config = await self._config()
        body = self._expect(await self._request("GET", f"/keys/{key_id}", config.service_key), dict)
        data = self._expect(body.get("data") or {}, dict)
        base = _to_key_result(data)
        return KeyDetails(
            id=base.id or key_id,
            name=base.name,
            key=MASKED_KEY,
            created_at=base.created_at,
            expires_at=base.expires_at,
            limit=base.limit,
            limit_reset=base.limit_reset,
            last_used=parse_timestamp(data.get("last_used_at")),
            usage=_usage(data.get("usage")),
        )


def _to_key_result(item: dict[str, Any]) -> KeyResult:
    return KeyResult(
        id=str(item.get("hash") or item.get("id", "")),
        name=item.get("name", ""),
        key=MASKED_KEY,
        created_at=parse_timestamp(item.get("created_at")) or utcnow(),
        expires_at=parse_timestamp(item.get("expires_at")),
        limit=item.get("limit"),
        limit_reset=item.get("limit_reset"),
    )


def _usage(value: Any) -> KeyUsage | None:
    if value is None:
        return None
    if isinstance(value, dict):
        return KeyUsage(
            requests=int(value.get("requests", 0)),
            cost=float(value.get("cost", 0.0)),
        )
    # OpenRouter reports usage as credits spent
    return KeyUsage(cost=float(value))
