# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    VaultError,
    get_database_url,
    get_valkey_url,
    get_onfleet_config,
    get_messaging_config,
    get_tracking_config,
    get_internal_api_secret,
)
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.onfleet_client import OnfleetClient
from clients.messaging_client import MessagingGatewayClient, MessagingGatewayError
