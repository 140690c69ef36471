"""Tests for toolgate.core.vault: envelope encryption and the credential table."""

import base64

import pytest

from toolgate.core.errors import CredentialNotFound, StoreUnavailable, VaultError
from toolgate.core.vault import CredentialVault, decrypt, encrypt, mask_secret

from tests.helpers import TEST_MASTER_KEY, FakeStore


class TestEnvelope:
    def test_round_trip(self):
        envelope = encrypt("ghp_secret_token", TEST_MASTER_KEY)
        assert decrypt(envelope, TEST_MASTER_KEY) == "ghp_secret_token"

    def test_same_plaintext_never_same_envelope(self):
        assert encrypt("same", TEST_MASTER_KEY) != encrypt("same", TEST_MASTER_KEY)

    def test_layout(self):
        raw = base64.b64decode(encrypt("abc", TEST_MASTER_KEY))
        # salt + iv + tag, then one ciphertext byte per plaintext byte
        assert len(raw) == 16 + 16 + 16 + 3

    def test_tampering_detected(self):
        raw = bytearray(base64.b64decode(encrypt("secret", TEST_MASTER_KEY)))
        raw[-1] ^= 0x01
        with pytest.raises(VaultError):
            decrypt(base64.b64encode(bytes(raw)).decode(), TEST_MASTER_KEY)

    def test_wrong_key_rejected(self):
        envelope = encrypt("secret", TEST_MASTER_KEY)
        with pytest.raises(VaultError):
            decrypt(envelope, "k" * 32)

    def test_short_master_key_rejected(self):
        with pytest.raises(VaultError, match="32"):
            encrypt("secret", "too-short")
        with pytest.raises(VaultError):
            encrypt("secret", None)

    def test_garbage_envelope(self):
        with pytest.raises(VaultError):
            decrypt("not base64!!", TEST_MASTER_KEY)
        with pytest.raises(VaultError):
            decrypt(base64.b64encode(b"short").decode(), TEST_MASTER_KEY)


class TestMaskSecret:
    def test_preview(self):
        assert mask_secret("sk-1234567890") == "sk-1****890"

    def test_short_secret_fully_masked(self):
        assert mask_secret("abc") == "****"


class TestCredentialVault:
    @pytest.mark.asyncio
    async def test_get_decrypts_stored_envelope(self):
        store = FakeStore(ready=True)
        store.execute_one.return_value = {"api_key_encrypted": encrypt("brave-key", TEST_MASTER_KEY)}
        vault = CredentialVault(store, TEST_MASTER_KEY)
        assert await vault.get("brave_search") == "brave-key"
        assert store.execute_one.await_args.args[1] == ("brave_search",)

    @pytest.mark.asyncio
    async def test_get_missing_service(self):
        vault = CredentialVault(FakeStore(ready=True), TEST_MASTER_KEY)
        with pytest.raises(CredentialNotFound, match="github"):
            await vault.get("github")

    @pytest.mark.asyncio
    async def test_store_not_ready(self):
        vault = CredentialVault(FakeStore(ready=False), TEST_MASTER_KEY)
        with pytest.raises(StoreUnavailable):
            await vault.get("github")

    @pytest.mark.asyncio
    async def test_set_upserts_envelope(self):
        store = FakeStore(ready=True)
        vault = CredentialVault(store, TEST_MASTER_KEY)
        await vault.set("github", "ghp_abc", {"owner": "acme"})
        query, params = store.execute.await_args.args
        assert "ON CONFLICT (service) DO UPDATE" in query
        assert params[0] == "github"
        assert decrypt(params[1], TEST_MASTER_KEY) == "ghp_abc"

    @pytest.mark.asyncio
    async def test_delete_reports_whether_removed(self):
        store = FakeStore(ready=True)
        vault = CredentialVault(store, TEST_MASTER_KEY)
        assert await vault.delete("github") is False
        store.execute.return_value = [{"service": "github"}]
        assert await vault.delete("github") is True

    def test_usable(self):
        assert CredentialVault(FakeStore(), TEST_MASTER_KEY).usable is True
        assert CredentialVault(FakeStore(), "short").usable is False
        assert CredentialVault(FakeStore(), None).usable is False
