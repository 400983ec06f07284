"""Tests for hydra_keys.storage — keychain backend, encrypted stub, manager."""

import pytest
from keyring.backends.fail import Keyring as FailKeyring

from hydra_keys.errors import BackendUnavailableError, HydraKeysError, StorageNotImplementedError
from hydra_keys.schema import ProviderRecord
from hydra_keys.storage import EncryptedFileStorage, KeychainStorage, StorageManager
from hydra_keys.storage.keychain import INDEX_ACCOUNT

TEST_SERVICE = "hydra-keys-test"


@pytest.fixture
def keychain(keyring_backend):
    return KeychainStorage(TEST_SERVICE, backend=keyring_backend)


class TestKeychainStorage:
    @pytest.mark.asyncio
    async def test_round_trip(self, keychain):
        await keychain.store("openrouter_1", "sk-service")
        assert await keychain.retrieve("openrouter_1") == "sk-service"

    @pytest.mark.asyncio
    async def test_retrieve_unknown(self, keychain):
        assert await keychain.retrieve("never-stored") is None

    @pytest.mark.asyncio
    async def test_store_overwrites(self, keychain):
        await keychain.store("h", "one")
        await keychain.store("h", "two")
        assert await keychain.retrieve("h") == "two"
        assert await keychain.list() == {"h"}

    @pytest.mark.asyncio
    async def test_list_tracks_handles(self, keychain):
        await keychain.store("a", "1")
        await keychain.store("b", "2")
        assert await keychain.list() == {"a", "b"}
        await keychain.delete("a")
        assert await keychain.list() == {"b"}

    @pytest.mark.asyncio
    async def test_list_excludes_index(self, keychain, keyring_backend):
        await keychain.store("a", "1")
        assert INDEX_ACCOUNT not in await keychain.list()
        assert (TEST_SERVICE, INDEX_ACCOUNT) in keyring_backend.entries

    @pytest.mark.asyncio
    async def test_delete(self, keychain):
        await keychain.store("h", "secret")
        await keychain.delete("h")
        assert await keychain.retrieve("h") is None

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, keychain):
        await keychain.delete("never-stored")
        await keychain.store("h", "secret")
        await keychain.delete("h")
        await keychain.delete("h")
        assert await keychain.list() == set()

    @pytest.mark.asyncio
    async def test_service_name_scopes_entries(self, keyring_backend):
        a = KeychainStorage("service-a", backend=keyring_backend)
        b = KeychainStorage("service-b", backend=keyring_backend)
        await a.store("h", "from-a")
        assert await b.retrieve("h") is None
        assert await b.list() == set()

    @pytest.mark.asyncio
    async def test_corrupt_index_reads_as_empty(self, keychain, keyring_backend):
        keyring_backend.entries[(TEST_SERVICE, INDEX_ACCOUNT)] = "{not json"
        assert await keychain.list() == set()
        await keychain.store("h", "secret")
        assert await keychain.list() == {"h"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("handle", ["", INDEX_ACCOUNT])
    async def test_rejects_reserved_handles(self, keychain, handle):
        with pytest.raises(ValueError):
            await keychain.store(handle, "x")

    @pytest.mark.asyncio
    async def test_unavailable_backend(self):
        keychain = KeychainStorage(TEST_SERVICE, backend=FailKeyring())
        with pytest.raises(BackendUnavailableError):
            await keychain.list()
        with pytest.raises(BackendUnavailableError):
            await keychain.retrieve("h")
        with pytest.raises(BackendUnavailableError):
            await keychain.store("h", "x")


class TestEncryptedFileStorage:
    @pytest.mark.asyncio
    async def test_every_operation_not_implemented(self):
        store = EncryptedFileStorage()
        for call in (
            store.store("h", "v"),
            store.retrieve("h"),
            store.delete("h"),
            store.list(),
        ):
            with pytest.raises(StorageNotImplementedError, match="not yet implemented"):
                await call

    def test_error_types(self):
        err = StorageNotImplementedError()
        assert isinstance(err, HydraKeysError)
        assert isinstance(err, NotImplementedError)


class TestStorageManager:
    def test_backend_for(self, storage):
        assert isinstance(storage.backend_for("keychain"), KeychainStorage)
        assert isinstance(storage.backend_for("encrypted-file"), EncryptedFileStorage)
        with pytest.raises(ValueError):
            storage.backend_for("vault")

    def test_active_follows_config(self, storage, initialized):
        cfg = initialized.load()
        assert storage.active(cfg) is storage.keychain()
        cfg.storage.backend = "encrypted-file"
        assert storage.active(cfg) is storage.encrypted()

    @pytest.mark.asyncio
    async def test_check_storage_available(self, storage):
        status = await storage.check_storage()
        assert status.available is True
        assert status.backend == "keychain"
        assert status.error is None

    @pytest.mark.asyncio
    async def test_check_storage_unavailable(self):
        manager = StorageManager(TEST_SERVICE, keyring_backend=FailKeyring())
        status = await manager.check_storage()
        assert status.available is False
        assert status.backend == "encrypted-file"
        assert status.error

    @pytest.mark.asyncio
    async def test_migrate_to_current_backend(self, storage, initialized):
        assert await storage.migrate(initialized, "keychain") == 0
        assert initialized.load().storage.backend == "keychain"

    @pytest.mark.asyncio
    async def test_migrate_to_encrypted_leaves_config_untouched(
        self, storage, initialized, configure
    ):
        await configure("openrouter", "sk-service")
        store = storage.keychain()
        config_store = initialized
        before = config_store.path.read_text()

        with pytest.raises(StorageNotImplementedError):
            await storage.migrate(config_store, "encrypted-file")

        assert config_store.path.read_text() == before
        assert await store.retrieve("openrouter_1700000000000") == "sk-service"

    @pytest.mark.asyncio
    async def test_migrate_with_no_providers_still_fails(self, storage, initialized):
        with pytest.raises(StorageNotImplementedError):
            await storage.migrate(initialized, "encrypted-file")
        assert initialized.load().storage.backend == "keychain"


class TestMigrateSkipsUnconfigured:
    @pytest.mark.asyncio
    async def test_unconfigured_records_are_not_copied(self, storage, initialized, monkeypatch):
        cfg = initialized.load()
        cfg.providers["neon"] = ProviderRecord(configured=False, service_key_id="neon_1")
        initialized.save(cfg)

        copied = []

        async def fake_store(handle, value):
            copied.append(handle)

        async def fake_list():
            return set()

        encrypted = storage.encrypted()
        monkeypatch.setattr(encrypted, "store", fake_store)
        monkeypatch.setattr(encrypted, "list", fake_list)

        assert await storage.migrate(initialized, "encrypted-file") == 0
        assert copied == []
        assert initialized.load().storage.backend == "encrypted-file"
