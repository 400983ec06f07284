"""Tests for hydra_keys.plugins — loading external adapters by module name."""

import textwrap
from unittest.mock import MagicMock, patch

import pytest

from hydra_keys.plugins import load_plugins, pip_install, pip_uninstall
from hydra_keys.registry import ProviderRegistry, build_registry

PLUGIN_SOURCE = '''
from hydra_keys.providers import HttpProvider, KeyDeleter


class AcmeProvider(HttpProvider, KeyDeleter):
    name = "{name}"
    display_name = "Acme"
    base_url = "https://api.acme.test"

    async def create_key(self, options):
        raise NotImplementedError

    async def list_keys(self):
        return []

    async def delete_key(self, key_id):
        return None


def register_providers(registry, resolver):
    registry.register(AcmeProvider(resolver))
'''


@pytest.fixture
def plugin_dir(tmp_path, monkeypatch):
    monkeypatch.syspath_prepend(str(tmp_path))

    def write(module: str, source: str) -> str:
        (tmp_path / f"{module}.py").write_text(textwrap.dedent(source))
        return module

    return write


class TestLoadPlugins:
    def test_registers_provider(self, plugin_dir, resolver):
        module = plugin_dir("hk_plugin_acme", PLUGIN_SOURCE.format(name="acme"))
        registry = ProviderRegistry()

        failures = load_plugins(registry, [module], resolver)

        assert failures == []
        provider = registry.get("acme")
        assert provider.display_name == "Acme"
        assert provider.supports("delete_key")

    def test_plugin_overrides_builtin_name(self, plugin_dir, resolver):
        module = plugin_dir("hk_plugin_override", PLUGIN_SOURCE.format(name="openrouter"))

        registry = build_registry(resolver, plugins=[module])

        assert registry.get("openrouter").display_name == "Acme"
        assert registry.names() == ["openrouter", "convex", "neon"]

    def test_missing_module(self, resolver):
        failures = load_plugins(ProviderRegistry(), ["hk_plugin_does_not_exist"], resolver)
        assert len(failures) == 1
        assert failures[0].module == "hk_plugin_does_not_exist"
        assert "import failed" in failures[0].error

    def test_missing_hook(self, plugin_dir, resolver):
        module = plugin_dir("hk_plugin_no_hook", "VALUE = 1\n")
        failures = load_plugins(ProviderRegistry(), [module], resolver)
        assert "register_providers" in failures[0].error

    def test_hook_error_does_not_stop_others(self, plugin_dir, resolver):
        broken = plugin_dir(
            "hk_plugin_broken",
            """
            def register_providers(registry, resolver):
                raise RuntimeError("bad plugin")
            """,
        )
        good = plugin_dir("hk_plugin_good", PLUGIN_SOURCE.format(name="good"))
        registry = ProviderRegistry()

        failures = load_plugins(registry, [broken, good], resolver)

        assert [(f.module, f.error) for f in failures] == [("hk_plugin_broken", "bad plugin")]
        assert "good" in registry

    def test_duplicate_between_plugins(self, plugin_dir, resolver):
        first = plugin_dir("hk_plugin_dup_a", PLUGIN_SOURCE.format(name="dup"))
        second = plugin_dir("hk_plugin_dup_b", PLUGIN_SOURCE.format(name="dup"))
        registry = ProviderRegistry()

        failures = load_plugins(registry, [first, second], resolver)

        assert [f.module for f in failures] == ["hk_plugin_dup_b"]
        assert "already registered" in failures[0].error
        assert len(registry) == 1


class TestPip:
    def test_install_uses_running_interpreter(self):
        with patch("hydra_keys.plugins.subprocess.run") as run:
            run.return_value = MagicMock(returncode=0)
            assert pip_install("hydra-keys-acme") == 0
        cmd = run.call_args[0][0]
        assert cmd[1:] == ["-m", "pip", "install", "hydra-keys-acme"]

    def test_uninstall_failure_code(self):
        with patch("hydra_keys.plugins.subprocess.run") as run:
            run.return_value = MagicMock(returncode=2)
            assert pip_uninstall("hydra-keys-acme") == 2
        assert run.call_args[0][0][-2:] == ["-y", "hydra-keys-acme"]
