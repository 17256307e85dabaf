# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    get_database_url,
    get_email_config,
)
from clients.postgres_client import PostgresClient
from clients.document_store import (
    DocumentStore,
    DocumentStoreError,
    DocumentNotFoundError,
    DocumentConflictError,
    PostgresDocumentStore,
    PARTITION_KEYS,
)
from clients.memory_store import InMemoryDocumentStore
from clients.email_client import EmailGatewayClient, EmailGatewayError
