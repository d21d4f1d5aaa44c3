"""
HashiCorp Vault access for the billing service's infrastructure secrets.

AppRole login from environment variables, KV v2 reads confined to the
'billing/' mount path. Missing configuration or secrets fail fast: the
service cannot start without its database and Valkey URLs.
"""

import os
import logging
from typing import Dict

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "billing"

EMAIL_FIELDS = ("gateway_url", "api_key", "hmac_secret")

# Process-wide client and secrets, keyed by path relative to the prefix
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, Dict[str, str]] = {}


class VaultError(Exception):
    """Vault operation failed. Fatal - application cannot function without secrets."""


class VaultClient:
    """AppRole-authenticated reader for secrets under billing/."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
    ):
        """
        Args:
            vault_addr: Vault URL, default VAULT_ADDR
            vault_namespace: Enterprise namespace, default VAULT_NAMESPACE

        Raises:
            ValueError: If address or AppRole credentials are not configured
            VaultError: If login fails
        """
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        role_id = os.getenv("VAULT_ROLE_ID")
        secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")
        if not role_id or not secret_id:
            raise ValueError("VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required")

        options = {"url": self.vault_addr}
        if self.vault_namespace:
            options["namespace"] = self.vault_namespace
        self.client = hvac.Client(**options)

        self._login(role_id, secret_id)
        logger.info(f"Vault client initialized: {self.vault_addr}")

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            response = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except Exception as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise VaultError(f"AppRole authentication failed: {e}")

        self.client.token = response["auth"]["client_token"]
        if not self.client.is_authenticated():
            raise VaultError("Vault authentication failed")

    def read_secret(self, path: str) -> Dict[str, str]:
        """
        All fields of the KV v2 secret at billing/<path>.

        Raises:
            VaultError: Path not accessible or doesn't exist
        """
        full_path = f"{_SECRET_PREFIX}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath:
            logger.error(f"Secret path not found: {full_path}")
            raise VaultError(f"Secret path '{full_path}' not found in Vault")
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise VaultError(f"Access denied to secret '{full_path}': {e}")

        return response["data"]["data"]

    def get_secret(self, path: str, field: str) -> str:
        """
        One field of the secret at billing/<path>.

        Raises:
            VaultError: Path not accessible or doesn't exist
            KeyError: Field not found in secret
        """
        return _require_field(path, self.read_secret(path), field)


def _require_field(path: str, secret: Dict[str, str], field: str) -> str:
    if field not in secret:
        raise KeyError(
            f"Field '{field}' not found in secret '{_SECRET_PREFIX}/{path}'. "
            f"Available: {', '.join(secret)}"
        )
    return secret[field]


def _cached_secret(path: str) -> Dict[str, str]:
    global _vault_client_instance

    if path not in _secret_cache:
        if _vault_client_instance is None:
            _vault_client_instance = VaultClient()
        _secret_cache[path] = _vault_client_instance.read_secret(path)
    return _secret_cache[path]


def reset() -> None:
    """Forget the client and cached secrets (credential rotation, tests)."""
    global _vault_client_instance
    _vault_client_instance = None
    _secret_cache.clear()


def get_database_url() -> str:
    """PostgreSQL connection URL."""
    return _require_field("database", _cached_secret("database"), "url")


def get_valkey_url() -> str:
    """Valkey (Redis) connection URL."""
    return _require_field("valkey", _cached_secret("valkey"), "url")


def get_email_config() -> Dict[str, str]:
    """
    Email gateway credentials.

    Returns:
        Dict with keys: gateway_url, api_key, hmac_secret
    """
    secret = _cached_secret("email")
    return {field: _require_field("email", secret, field) for field in EMAIL_FIELDS}
