"""
Unit tests for the Vault credentials client
"""

from unittest.mock import Mock, patch

import pytest
import requests

from sync_utils.vault_client import VaultClient


def _response(status_code=200, data=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = {"data": {"data": data or {}}}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def client():
    return VaultClient(vault_addr="http://vault:8200/", vault_token="s.token")


class TestVaultClientInit:

    def test_init_with_parameters(self, client):
        assert client.vault_addr == "http://vault:8200"
        assert client.headers["X-Vault-Token"] == "s.token"
        assert "X-Vault-Namespace" not in client.headers

    def test_init_from_environment(self, monkeypatch):
        monkeypatch.setenv("VAULT_ADDR", "http://env-vault:8200")
        monkeypatch.setenv("VAULT_TOKEN", "env-token")

        client = VaultClient()

        assert client.vault_addr == "http://env-vault:8200"
        assert client.vault_token == "env-token"

    def test_namespace_header(self):
        client = VaultClient(vault_addr="http://vault:8200", vault_token="t", namespace="hr")
        assert client.headers["X-Vault-Namespace"] == "hr"

    def test_missing_address_raises(self, monkeypatch):
        monkeypatch.delenv("VAULT_ADDR", raising=False)
        with pytest.raises(ValueError, match="Vault address not provided"):
            VaultClient(vault_token="t")

    def test_missing_token_raises(self, monkeypatch):
        monkeypatch.delenv("VAULT_TOKEN", raising=False)
        with pytest.raises(ValueError, match="Vault token not provided"):
            VaultClient(vault_addr="http://vault:8200")


class TestGetSecret:

    @patch("sync_utils.vault_client.requests.get")
    def test_inserts_kv2_data_segment(self, mock_get, client):
        mock_get.return_value = _response(data={"username": "svc"})

        assert client.get_secret("secret/hris-sync/directory") == {"username": "svc"}
        assert mock_get.call_args.args[0] == "http://vault:8200/v1/secret/data/hris-sync/directory"
        assert mock_get.call_args.kwargs["timeout"] == 10.0

    @patch("sync_utils.vault_client.requests.get")
    def test_existing_data_segment_kept(self, mock_get, client):
        mock_get.return_value = _response(data={"k": "v"})

        client.get_secret("secret/data/hris-sync/hris")

        assert mock_get.call_args.args[0] == "http://vault:8200/v1/secret/data/hris-sync/hris"

    @patch("sync_utils.vault_client.requests.get")
    def test_not_found_raises_value_error(self, mock_get, client):
        mock_get.return_value = _response(status_code=404)

        with pytest.raises(ValueError, match="Secret not found"):
            client.get_secret("secret/hris-sync/hris")

    @patch("sync_utils.vault_client.requests.get")
    def test_server_error_propagates(self, mock_get, client):
        mock_get.return_value = _response(status_code=500)

        with pytest.raises(requests.HTTPError):
            client.get_secret("secret/hris-sync/hris")

    @patch("sync_utils.vault_client.requests.get")
    def test_empty_secret_raises(self, mock_get, client):
        mock_get.return_value = _response(data={})

        with pytest.raises(ValueError, match="No data found"):
            client.get_secret("secret/hris-sync/hris")

    @pytest.mark.parametrize("path", ["", "secret/../root", "//secret", "secret/hris sync", "secret/hr;drop"])
    def test_invalid_paths_rejected(self, client, path):
        with pytest.raises(ValueError):
            client.get_secret(path)


class TestGetCredentials:

    @patch("sync_utils.vault_client.requests.get")
    def test_directory_credentials(self, mock_get, client):
        mock_get.return_value = _response(data={"username": "svc-sync", "password": "pw"})

        creds = client.get_credentials("directory")

        assert creds == {"username": "svc-sync", "password": "pw"}
        assert mock_get.call_args.args[0].endswith("/v1/secret/data/hris-sync/directory")

    @patch("sync_utils.vault_client.requests.get")
    def test_custom_mount_path(self, mock_get, client):
        mock_get.return_value = _response(data={"username": "u", "password": "p"})

        client.get_credentials("directory", mount_path="kv/prod/")

        assert mock_get.call_args.args[0].endswith("/v1/kv/data/prod/directory")

    @patch("sync_utils.vault_client.requests.get")
    def test_missing_fields_raise(self, mock_get, client):
        mock_get.return_value = _response(data={"server": "hr-db", "username": "sa"})

        with pytest.raises(ValueError, match="database, password"):
            client.get_credentials("hris")

    def test_unknown_kind_raises(self, client):
        with pytest.raises(ValueError, match="Unsupported credential kind"):
            client.get_credentials("payroll")
