"""
Concordance storage.

Each concept is one document keyed by its concept id. Writes are full
replacements of `concordedIds` (last write wins). Mutations read the pre-image
in the same transaction so the outcome can be classified:

- upsert: previous key empty => CREATED, otherwise UPDATED
- delete: previous key empty => NOT_FOUND, otherwise DELETED

Back-end failures (transport, permissions, unreadable documents) are raised as
`ConcordanceStoreError` with the original exception chained. No retries.
"""

from __future__ import annotations

import threading
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from concordances_rw.concordances.errors import ConcordanceStoreError
from concordances_rw.concordances.models import ConcordanceRecord, StorageOutcome


class ConcordanceStore(Protocol):
    def read(self, concept_id: str) -> ConcordanceRecord: ...

    def upsert(self, record: ConcordanceRecord) -> StorageOutcome: ...

    def delete(self, concept_id: str) -> StorageOutcome: ...

    def healthcheck(self) -> None: ...


def outcome_for_upsert(previous: ConcordanceRecord) -> StorageOutcome:
    return StorageOutcome.UPDATED if previous.found else StorageOutcome.CREATED


def outcome_for_delete(previous: ConcordanceRecord) -> StorageOutcome:
    return StorageOutcome.DELETED if previous.found else StorageOutcome.NOT_FOUND


def _record_from_snapshot(snap: Any) -> ConcordanceRecord:
    if snap is None or not getattr(snap, "exists", False):
        return ConcordanceRecord.empty()
    return ConcordanceRecord.from_document(snap.to_dict())


class FirestoreConcordanceStore:
    """
    Firestore-backed store: collection `<collection>`, document id = concept id.
    """

    def __init__(self, *, client: Any, collection: str, firestore_module: Any = None) -> None:
        if firestore_module is None:
            from google.cloud import firestore as firestore_module  # type: ignore[no-redef]

        self._firestore = firestore_module
        self._db = client
        self._collection = str(collection)

    @property
    def collection(self) -> str:
        return self._collection

    def _ref(self, concept_id: str) -> Any:
        return self._db.collection(self._collection).document(concept_id)

    def read(self, concept_id: str) -> ConcordanceRecord:
        try:
            snap = self._ref(concept_id).get()
            return _record_from_snapshot(snap)
        except ValidationError as e:
            raise ConcordanceStoreError(f"unreadable concordance document {concept_id}: {e}") from e
        except Exception as e:
            raise ConcordanceStoreError(f"failed to read concordance {concept_id}: {e}") from e

    def upsert(self, record: ConcordanceRecord) -> StorageOutcome:
        ref = self._ref(record.concept_id)
        doc = record.to_document()

        @self._firestore.transactional
        def _txn(transaction: Any) -> ConcordanceRecord:
            previous = _record_from_snapshot(ref.get(transaction=transaction))
            transaction.set(ref, doc)
            return previous

        try:
            previous = _txn(self._db.transaction())
        except Exception as e:
            raise ConcordanceStoreError(f"failed to write concordance {record.concept_id}: {e}") from e
        return outcome_for_upsert(previous)

    def delete(self, concept_id: str) -> StorageOutcome:
        ref = self._ref(concept_id)

        @self._firestore.transactional
        def _txn(transaction: Any) -> ConcordanceRecord:
            previous = _record_from_snapshot(ref.get(transaction=transaction))
            if previous.found:
                transaction.delete(ref)
            return previous

        try:
            previous = _txn(self._db.transaction())
        except Exception as e:
            raise ConcordanceStoreError(f"failed to delete concordance {concept_id}: {e}") from e
        return outcome_for_delete(previous)

    def healthcheck(self) -> None:
        """Read at most one document; never writes."""
        try:
            list(self._db.collection(self._collection).limit(1).stream())
        except Exception as e:
            raise ConcordanceStoreError(f"cannot access Firestore collection {self._collection}: {e}") from e


class InMemoryConcordanceStore:
    """
    Process-local store for local runs (STORE_BACKEND=memory) and tests.
    """

    def __init__(self, records: Optional[dict[str, list[str]]] = None) -> None:
        self._lock = threading.Lock()
        self._docs: dict[str, dict[str, Any]] = {}
        for concept_id, ids in (records or {}).items():
            self._docs[concept_id] = {"conceptId": concept_id, "concordedIds": list(ids)}

    def read(self, concept_id: str) -> ConcordanceRecord:
        with self._lock:
            return ConcordanceRecord.from_document(self._docs.get(concept_id))

    def upsert(self, record: ConcordanceRecord) -> StorageOutcome:
        with self._lock:
            previous = ConcordanceRecord.from_document(self._docs.get(record.concept_id))
            self._docs[record.concept_id] = record.to_document()
        return outcome_for_upsert(previous)

    def delete(self, concept_id: str) -> StorageOutcome:
        with self._lock:
            previous = ConcordanceRecord.from_document(self._docs.pop(concept_id, None))
        return outcome_for_delete(previous)

    def healthcheck(self) -> None:
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._docs)
