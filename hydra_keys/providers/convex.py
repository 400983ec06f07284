"""
Convex adapter — deploy keys for a project's deployments.

Convex deploy keys can only be revoked from the Convex dashboard, so this
adapter deliberately does not implement KeyDeleter.
"""

from __future__ import annotations

from typing import Any

from hydra_keys.providers.base import (
    MASKED_KEY,
    CreateKeyOptions,
    HttpProvider,
    KeyResult,
    ProviderSetting,
    parse_timestamp,
    utcnow,
)


class ConvexProvider(HttpProvider):
    name = "convex"
    display_name = "Convex"
    version = "1.0.0"
    keys_url = "https://dashboard.convex.dev/settings"
    settings = (
        ProviderSetting("projectId", "Convex project/deployment ID", required=True),
        ProviderSetting("teamId", "Convex team ID (optional)"),
    )

    base_url = "https://api.convex.dev/v1"
    auth_scheme = "Convex"
    validate_path = "/projects"

    async def create_key(self, options: CreateKeyOptions) -> KeyResult:
        config = await self._config()
        project_id = config.require(self.name, "projectId")

        body = await self._request(
            "POST",
            f"/deployments/{project_id}/create_deploy_key",
            config.service_key,
            json={},
        )
        self._expect(body, dict, "deployKey")
        deploy_key = body["deployKey"]
        return KeyResult(
            id=deploy_key,
            name=options.name,
            key=deploy_key,
            created_at=utcnow(),
            metadata={"projectId": project_id},
        )

    async def list_keys(self) -> list[KeyResult]:
        config = await self._config()
        body = await self._request("GET", "/deployments", config.service_key)
        body = self._expect(body or {}, dict)
        deployments = self._expect(body.get("deployments", []), list)
        return [_to_key_result(self._expect(d, dict)) for d in deployments]


def _to_key_result(deployment: dict[str, Any]) -> KeyResult:
    # Some deployment payloads echo the deploy key; it must never reach the caller
    return KeyResult(
        id=str(deployment.get("id") or deployment.get("name", "")),
        name=deployment.get("name", ""),
        key=MASKED_KEY,
        created_at=parse_timestamp(deployment.get("createTime")) or utcnow(),
    )
