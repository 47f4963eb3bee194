"""Tests for VaultClient - HashiCorp Vault secrets management."""

from unittest.mock import patch

import pytest
from hvac.exceptions import InvalidPath

import clients.vault_client as vault_module
from clients.vault_client import (
    VaultClient,
    get_onfleet_config,
    get_tracking_config,
)


@pytest.fixture
def vault_env(monkeypatch):
    monkeypatch.setenv("VAULT_ADDR", "https://vault.example.com")
    monkeypatch.setenv("VAULT_ROLE_ID", "role")
    monkeypatch.setenv("VAULT_SECRET_ID", "secret")


@pytest.fixture
def hvac_client(vault_env):
    """hvac.Client mocked to authenticate and serve secrets from a dict."""
    secrets = {}
    with patch("hvac.Client") as client_cls:
        client = client_cls.return_value
        client.auth.approle.login.return_value = {"auth": {"client_token": "tok"}}
        client.is_authenticated.return_value = True

        def read_secret_version(path, raise_on_deleted_version):
            if path not in secrets:
                raise InvalidPath()
            return {"data": {"data": secrets[path]}}

        client.secrets.kv.v2.read_secret_version.side_effect = read_secret_version
        yield secrets


@pytest.fixture(autouse=True)
def reset_vault_singleton():
    vault_module._vault_client_instance = None
    vault_module._secret_cache.clear()
    yield
    vault_module._vault_client_instance = None
    vault_module._secret_cache.clear()


class TestVaultClientInit:
    """Initialization and authentication."""

    def test_missing_vault_addr_raises(self, monkeypatch):
        """VAULT_ADDR required."""
        monkeypatch.delenv("VAULT_ADDR", raising=False)
        with pytest.raises(ValueError, match="VAULT_ADDR"):
            VaultClient()

    def test_missing_approle_credentials_raises(self, monkeypatch):
        """VAULT_ROLE_ID and VAULT_SECRET_ID required."""
        monkeypatch.setenv("VAULT_ADDR", "https://vault.example.com")
        monkeypatch.delenv("VAULT_ROLE_ID", raising=False)
        monkeypatch.delenv("VAULT_SECRET_ID", raising=False)
        with pytest.raises(ValueError, match="VAULT_ROLE_ID"):
            VaultClient()

    def test_failed_login_raises_permission_error(self, vault_env):
        """AppRole login failure is fatal."""
        with patch("hvac.Client") as client_cls:
            client_cls.return_value.auth.approle.login.side_effect = RuntimeError("denied")
            with pytest.raises(PermissionError, match="authentication"):
                VaultClient()


class TestGetSecret:
    """Secret retrieval - paths automatically scoped to dispatch/."""

    def test_reads_under_dispatch_prefix(self, hvac_client):
        """Caller path 'onfleet' resolves to 'dispatch/onfleet'."""
        hvac_client["dispatch/onfleet"] = {"api_key": "k", "webhook_secret": "ab"}

        assert VaultClient().get_secret("onfleet", "api_key") == "k"

    def test_missing_path_raises_permission_error(self, hvac_client):
        """Unknown path surfaces as PermissionError."""
        with pytest.raises(PermissionError, match="dispatch/nowhere"):
            VaultClient().get_secret("nowhere", "x")

    def test_missing_field_raises_keyerror(self, hvac_client):
        """Unknown field lists what is available."""
        hvac_client["dispatch/database"] = {"url": "postgresql://x"}
        with pytest.raises(KeyError, match="Available: url"):
            VaultClient().get_secret("database", "password")


class TestConvenienceFunctions:
    """Cached helpers."""

    def test_onfleet_config_returns_both_fields(self, hvac_client):
        """Delivery-provider config carries api key and webhook secret."""
        hvac_client["dispatch/onfleet"] = {"api_key": "k", "webhook_secret": "ab"}

        assert get_onfleet_config() == {"api_key": "k", "webhook_secret": "ab"}

    def test_values_are_cached(self, hvac_client):
        """Second call does not go back to Vault."""
        hvac_client["dispatch/onfleet"] = {"api_key": "k", "webhook_secret": "ab"}
        get_onfleet_config()
        hvac_client["dispatch/onfleet"] = {"api_key": "changed", "webhook_secret": "ab"}

        assert get_onfleet_config()["api_key"] == "k"

    def test_tracking_config_previous_secret_optional(self, hvac_client):
        """No previous secret outside of a rotation."""
        hvac_client["dispatch/tracking"] = {"jwt_secret": "current"}

        assert get_tracking_config() == {"jwt_secret": "current", "previous_jwt_secret": None}
