"""In-process DocumentStore for dev mode and tests.

Same contract as PostgresDocumentStore. Documents are deep-copied on the way
in and out so callers never share mutable state with the store.
"""

import copy
import threading
from typing import Any, Iterable

from clients.document_store import (
    DocumentConflictError,
    DocumentNotFoundError,
    partition_key_for,
)


class InMemoryDocumentStore:
    """Dict-backed DocumentStore guarded by a single lock."""

    def __init__(self):
        # collection -> (partition_key, id) -> document
        self._collections: dict[str, dict[tuple[str, str], dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def _bucket(self, collection: str) -> dict[tuple[str, str], dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    def get(self, collection: str, doc_id: str, partition_key: str) -> dict[str, Any] | None:
        with self._lock:
            document = self._bucket(collection).get((str(partition_key), doc_id))
            return copy.deepcopy(document) if document is not None else None

    def query(
        self,
        collection: str,
        filters: dict[str, Any],
        ignore_case: Iterable[str] = (),
    ) -> list[dict[str, Any]]:
        folded = set(ignore_case)

        def matches(document: dict[str, Any]) -> bool:
            for field, expected in filters.items():
                actual = document.get(field)
                if field in folded and isinstance(actual, str) and isinstance(expected, str):
                    if actual.lower() != expected.lower():
                        return False
                elif actual != expected:
                    return False
            return True

        with self._lock:
            return [
                copy.deepcopy(document)
                for document in self._bucket(collection).values()
                if matches(document)
            ]

    def create(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        key = (partition_key_for(collection, document), document["id"])
        with self._lock:
            bucket = self._bucket(collection)
            if key in bucket:
                raise DocumentConflictError(
                    f"Document '{document['id']}' already exists in '{collection}'"
                )
            bucket[key] = copy.deepcopy(document)
        return document

    def replace(
        self,
        collection: str,
        doc_id: str,
        partition_key: str,
        document: dict[str, Any],
        if_match: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        key = (str(partition_key), doc_id)
        with self._lock:
            bucket = self._bucket(collection)
            if key not in bucket:
                raise DocumentNotFoundError(f"Document '{doc_id}' not found in '{collection}'")
            current = bucket[key]
            for field, expected in (if_match or {}).items():
                if current.get(field) != expected:
                    raise DocumentConflictError(
                        f"Document '{doc_id}' in '{collection}' changed: {field}"
                    )
            bucket[key] = copy.deepcopy(document)
        return document

    def delete(self, collection: str, doc_id: str, partition_key: str) -> bool:
        with self._lock:
            return self._bucket(collection).pop((str(partition_key), doc_id), None) is not None
