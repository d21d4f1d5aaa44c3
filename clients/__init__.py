"""
Infrastructure clients for the billing core.

PostgreSQL holds documents, counters and settings; Valkey holds preview
generations; Vault holds the connection secrets; the e-mail gateway sends
margin alerts.
"""

from clients.vault_client import VaultClient, VaultError, get_database_url, get_valkey_url, get_email_config
from clients.postgres_client import PostgresClient, TransactionCursor
from clients.valkey_client import ValkeyClient
from clients.email_client import EmailGatewayClient, EmailGatewayError

__all__ = [
    "VaultClient", "VaultError", "get_database_url", "get_valkey_url", "get_email_config",
    "PostgresClient", "TransactionCursor",
    "ValkeyClient",
    "EmailGatewayClient", "EmailGatewayError",
]
