"""Tests for VaultClient - HashiCorp Vault secrets management."""

from unittest.mock import Mock

import pytest
from hvac.exceptions import Forbidden, InvalidPath

import clients.vault_client as vault_module
from clients.vault_client import VaultClient, VaultError


@pytest.fixture
def vault_env(monkeypatch):
    monkeypatch.setenv("VAULT_ADDR", "https://vault.example.com")
    monkeypatch.setenv("VAULT_ROLE_ID", "role")
    monkeypatch.setenv("VAULT_SECRET_ID", "secret")
    monkeypatch.delenv("VAULT_NAMESPACE", raising=False)


@pytest.fixture
def hvac_client(monkeypatch, vault_env):
    """hvac.Client replaced by a Mock that authenticates and serves billing/ secrets."""
    client = Mock()
    client.auth.approle.login.return_value = {"auth": {"client_token": "token"}}
    client.is_authenticated.return_value = True

    secrets = {
        "billing/database": {"url": "postgresql://billing@db/billing"},
        "billing/valkey": {"url": "redis://valkey:6379/0"},
        "billing/email": {"gateway_url": "https://mail", "api_key": "k", "hmac_secret": "s"},
    }

    def read_secret_version(path, raise_on_deleted_version=True):
        if path not in secrets:
            raise InvalidPath()
        return {"data": {"data": secrets[path]}}

    client.secrets.kv.v2.read_secret_version.side_effect = read_secret_version
    monkeypatch.setattr(vault_module.hvac, "Client", Mock(return_value=client))
    monkeypatch.setattr(vault_module, "_vault_client_instance", None)
    monkeypatch.setattr(vault_module, "_secret_cache", {})
    return client


class TestVaultClientInit:
    """Initialization and authentication."""

    def test_missing_vault_addr_raises(self, monkeypatch, vault_env):
        monkeypatch.delenv("VAULT_ADDR")

        with pytest.raises(ValueError, match="VAULT_ADDR"):
            VaultClient()

    def test_missing_approle_credentials_raises(self, monkeypatch, vault_env):
        monkeypatch.delenv("VAULT_SECRET_ID")

        with pytest.raises(ValueError, match="VAULT_ROLE_ID"):
            VaultClient()

    def test_failed_login_raises_vault_error(self, hvac_client):
        hvac_client.auth.approle.login.side_effect = Forbidden("denied")

        with pytest.raises(VaultError, match="AppRole authentication failed"):
            VaultClient()

    def test_valid_approle_authenticates(self, hvac_client):
        client = VaultClient()

        assert client.client.token == "token"


class TestGetSecret:
    """Secret retrieval - paths automatically scoped to billing/."""

    def test_returns_field_value(self, hvac_client):
        assert VaultClient().get_secret("database", "url") == "postgresql://billing@db/billing"

        hvac_client.secrets.kv.v2.read_secret_version.assert_called_with(
            path="billing/database", raise_on_deleted_version=True
        )

    def test_missing_path_raises(self, hvac_client):
        with pytest.raises(VaultError, match="not found"):
            VaultClient().get_secret("nonexistent", "field")

    def test_access_denied_raises(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.side_effect = Forbidden("no")

        with pytest.raises(VaultError, match="Access denied"):
            VaultClient().get_secret("database", "url")

    def test_missing_field_raises_keyerror(self, hvac_client):
        with pytest.raises(KeyError, match="not found"):
            VaultClient().get_secret("database", "nonexistent_field")


class TestConvenienceFunctions:
    """Module-level convenience functions."""

    def test_get_database_url(self, hvac_client):
        assert vault_module.get_database_url().startswith("postgresql://")

    def test_get_valkey_url(self, hvac_client):
        assert vault_module.get_valkey_url().startswith("redis://")

    def test_get_email_config(self, hvac_client):
        assert vault_module.get_email_config() == {
            "gateway_url": "https://mail", "api_key": "k", "hmac_secret": "s",
        }

    def test_values_cached(self, hvac_client):
        vault_module.get_database_url()
        vault_module.get_database_url()

        assert hvac_client.secrets.kv.v2.read_secret_version.call_count == 1

    def test_email_config_read_once(self, hvac_client):
        vault_module.get_email_config()

        hvac_client.secrets.kv.v2.read_secret_version.assert_called_once_with(
            path="billing/email", raise_on_deleted_version=True
        )

    def test_incomplete_email_secret_raises(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.side_effect = None
        hvac_client.secrets.kv.v2.read_secret_version.return_value = {
            "data": {"data": {"gateway_url": "https://mail"}}
        }

        with pytest.raises(KeyError, match="api_key"):
            vault_module.get_email_config()

    def test_reset_forgets_client_and_secrets(self, hvac_client):
        vault_module.get_database_url()

        vault_module.reset()
        vault_module.get_database_url()

        assert hvac_client.secrets.kv.v2.read_secret_version.call_count == 2
        assert vault_module.hvac.Client.call_count == 2
