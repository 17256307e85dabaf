"""
Document storage: named collections of JSON documents with a partition key.

Every collection declares which document field is its partition key. Point
reads need both the document id and the partition key value; queries filter
on top-level fields by equality.

PostgresDocumentStore keeps all collections in one JSONB table, keyed by
(collection, partition_key, id).
"""

import logging
from typing import Any, Iterable, Protocol

from clients.postgres_client import PostgresClient

logger = logging.getLogger(__name__)


# Collection name -> partition key field
PARTITION_KEYS: dict[str, str] = {
    "admins": "id",
    "users": "company_id",
    "companies": "id",
    "sessions": "token",
    "magic_links": "token",
    "invitations": "company_id",
    "security_events": "event_type",
}


class DocumentStoreError(Exception):
    """Storage operation failed."""


class DocumentNotFoundError(DocumentStoreError):
    """Replace targeted a document that does not exist."""


class DocumentConflictError(DocumentStoreError):
    """Create targeted an id that already exists in the partition."""


def partition_key_for(collection: str, document: dict[str, Any]) -> str:
    """Return the partition key value of a document in the given collection.

    Raises:
        ValueError: Unknown collection or document missing its partition key.
    """
    if collection not in PARTITION_KEYS:
        raise ValueError(f"Unknown collection '{collection}'")
    field = PARTITION_KEYS[collection]
    value = document.get(field)
    if value is None:
        raise ValueError(f"Document in '{collection}' is missing partition key '{field}'")
    return str(value)


class DocumentStore(Protocol):
    """Generic document operations the auth core depends on."""

    def get(self, collection: str, doc_id: str, partition_key: str) -> dict[str, Any] | None:
        """Point read. None if the document does not exist."""
        ...

    def query(
        self,
        collection: str,
        filters: dict[str, Any],
        ignore_case: Iterable[str] = (),
    ) -> list[dict[str, Any]]:
        """Documents whose fields equal every filter value. Fields listed in
        ignore_case compare case-insensitively."""
        ...

    def create(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        ...

    def replace(
        self,
        collection: str,
        doc_id: str,
        partition_key: str,
        document: dict[str, Any],
        if_match: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Overwrite a document. With if_match, only while every listed field
        still holds the given value (None matches a null or absent field).

        Raises:
            DocumentNotFoundError: No such document.
            DocumentConflictError: if_match no longer holds.
        """
        ...

    def delete(self, collection: str, doc_id: str, partition_key: str) -> bool:
        ...


def _as_text(value: Any) -> str | None:
    """Render a filter value the way ->> renders the JSON field."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _field_conditions(
    filters: dict[str, Any],
    ignore_case: Iterable[str] = (),
) -> tuple[list[str], list[Any]]:
    """SQL conditions and params matching body fields against filter values."""
    folded = set(ignore_case)
    conditions: list[str] = []
    params: list[Any] = []

    for field, value in filters.items():
        text = _as_text(value)
        if text is None:
            conditions.append("body->>%s IS NULL")
            params.append(field)
        elif field in folded:
            conditions.append("lower(body->>%s) = lower(%s)")
            params.extend([field, text])
        else:
            conditions.append("body->>%s = %s")
            params.extend([field, text])

    return conditions, params


class PostgresDocumentStore:
    """DocumentStore backed by a single PostgreSQL JSONB table."""

    # Sessions, magic links and invitations are looked up by token on every
    # authenticated request or link click.
    SCHEMA_SQL = """
        CREATE TABLE IF NOT EXISTS documents (
            collection    text  NOT NULL,
            id            text  NOT NULL,
            partition_key text  NOT NULL,
            body          jsonb NOT NULL,
            PRIMARY KEY (collection, partition_key, id)
        );
        CREATE INDEX IF NOT EXISTS documents_collection_idx ON documents (collection);
        CREATE INDEX IF NOT EXISTS documents_token_idx
            ON documents (collection, (body->>'token'));
    """

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def ensure_schema(self) -> None:
        """Create the documents table and indexes if missing."""
        self._db.execute(self.SCHEMA_SQL)
        logger.info("Document schema ensured")

    def get(self, collection: str, doc_id: str, partition_key: str) -> dict[str, Any] | None:
        row = self._db.execute_single(
            """SELECT body FROM documents
               WHERE collection = %s AND partition_key = %s AND id = %s""",
            (collection, partition_key, doc_id),
        )
        return row["body"] if row else None

    def query(
        self,
        collection: str,
        filters: dict[str, Any],
        ignore_case: Iterable[str] = (),
    ) -> list[dict[str, Any]]:
        field_conditions, field_params = _field_conditions(filters, ignore_case)
        conditions = ["collection = %s", *field_conditions]
        params: list[Any] = [collection, *field_params]

        where_clause = " AND ".join(conditions)
        rows = self._db.execute(
            f"SELECT body FROM documents WHERE {where_clause}",
            tuple(params),
        )
        return [row["body"] for row in rows]

    def create(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        partition_key = partition_key_for(collection, document)
        rows = self._db.execute_returning(
            """INSERT INTO documents (collection, id, partition_key, body)
               VALUES (%s, %s, %s, %s)
               ON CONFLICT DO NOTHING
               RETURNING id""",
            (collection, document["id"], partition_key, document),
        )
        if not rows:
            raise DocumentConflictError(
                f"Document '{document['id']}' already exists in '{collection}'"
            )
        return document

    def replace(
        self,
        collection: str,
        doc_id: str,
        partition_key: str,
        document: dict[str, Any],
        if_match: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        field_conditions, field_params = _field_conditions(if_match or {})
        conditions = ["collection = %s", "partition_key = %s", "id = %s", *field_conditions]
        params: list[Any] = [document, collection, partition_key, doc_id, *field_params]

        where_clause = " AND ".join(conditions)
        rows = self._db.execute_returning(
            f"UPDATE documents SET body = %s WHERE {where_clause} RETURNING id",
            tuple(params),
        )
        if not rows:
            if if_match:
                # Missing and changed documents are indistinguishable here.
                raise DocumentConflictError(
                    f"Document '{doc_id}' in '{collection}' changed or is missing"
                )
            raise DocumentNotFoundError(f"Document '{doc_id}' not found in '{collection}'")
        return document

    def delete(self, collection: str, doc_id: str, partition_key: str) -> bool:
        rows = self._db.execute_returning(
            """DELETE FROM documents
               WHERE collection = %s AND partition_key = %s AND id = %s
               RETURNING id""",
            (collection, partition_key, doc_id),
        )
        return len(rows) > 0
