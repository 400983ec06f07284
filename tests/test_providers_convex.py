"""Tests for the Convex adapter."""

import pytest

from hydra_keys.errors import ProviderNotConfiguredError, RemoteRequestFailedError
from hydra_keys.providers import MASKED_KEY, ConvexProvider, CreateKeyOptions, ProviderConfig


@pytest.fixture
def provider(registry) -> ConvexProvider:
    return registry.get("convex")


class TestConvex:
    def test_no_delete_capability(self, provider):
        assert not provider.supports("delete_key")
        assert not provider.supports("get_key_details")
        assert not hasattr(provider, "delete_key")

    def test_project_id_is_required_setting(self, provider):
        required = [s.key for s in provider.settings if s.required]
        assert required == ["projectId"]

    @pytest.mark.asyncio
    async def test_create_key(self, provider, configure, api):
        await configure("convex", "convex-admin", {"projectId": "happy-otter-123"})
        api.add(
            "POST",
            "/v1/deployments/happy-otter-123/create_deploy_key",
            json={"deployKey": "prod:happy-otter-123|secret"},
        )

        result = await provider.create_key(CreateKeyOptions(name="ci"))

        assert len(api.requests) == 1
        assert api.requests[0].headers["Authorization"] == "Convex convex-admin"
        assert api.body() == {}
        assert result.key == "prod:happy-otter-123|secret"
        assert result.name == "ci"
        assert result.metadata == {"projectId": "happy-otter-123"}

    @pytest.mark.asyncio
    async def test_create_without_project_id(self, provider, configure, api):
        await configure("convex", "convex-admin")
        with pytest.raises(ProviderNotConfiguredError, match="projectId"):
            await provider.create_key(CreateKeyOptions(name="ci"))
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_list_never_exposes_deploy_key(self, provider, configure, api):
        await configure("convex", "convex-admin", {"projectId": "p"})
        api.add(
            "GET",
            "/v1/deployments",
            json={
                "deployments": [
                    {
                        "id": "dep-1",
                        "name": "happy-otter-123",
                        "createTime": 1700000000000,
                        "deployKey": "prod:happy-otter-123|secret",
                    },
                    {"name": "sad-otter-456"},
                ]
            },
        )

        keys = await provider.list_keys()

        assert [k.id for k in keys] == ["dep-1", "sad-otter-456"]
        assert all(k.key == MASKED_KEY for k in keys)
        assert all("secret" not in k.id for k in keys)
        assert keys[0].created_at.year == 2023

    @pytest.mark.asyncio
    async def test_remote_error(self, provider, configure, api):
        await configure("convex", "convex-admin", {"projectId": "p"})
        api.add("GET", "/v1/deployments", status=403, json={"message": "Forbidden team"})
        with pytest.raises(RemoteRequestFailedError) as exc:
            await provider.list_keys()
        assert exc.value.message == "Forbidden team"

    @pytest.mark.asyncio
    async def test_create_without_deploy_key_in_body(self, provider, configure, api):
        await configure("convex", "convex-admin", {"projectId": "p"})
        api.add("POST", "/v1/deployments/p/create_deploy_key", json={"ok": True})
        with pytest.raises(RemoteRequestFailedError, match="Unexpected response from Convex"):
            await provider.create_key(CreateKeyOptions(name="ci"))

    @pytest.mark.asyncio
    async def test_validate(self, provider, api):
        api.add("GET", "/v1/projects", json=[])
        result = await provider.validate_config(ProviderConfig(service_key="convex-admin"))
        assert result.valid is True
