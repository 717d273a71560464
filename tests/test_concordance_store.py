import unittest

from concordances_rw.concordances.errors import ConcordanceStoreError
from concordances_rw.concordances.models import ConcordanceRecord, StorageOutcome
from concordances_rw.persistence.concordance_store import (
    FirestoreConcordanceStore,
    InMemoryConcordanceStore,
)


class _FakeSnapshot:
    def __init__(self, *, exists: bool, data: dict | None) -> None:
        self.exists = bool(exists)
        self._data = data

    def to_dict(self) -> dict | None:
        return self._data


class _FakeDocRef:
    def __init__(self, *, db: "_FakeDB", path: str) -> None:
        self._db = db
        self._path = path

    def get(self, *, transaction: object = None) -> _FakeSnapshot:  # noqa: ARG002 - matches firestore shape
        if self._db.fail_with is not None:
            raise self._db.fail_with
        data = self._db.store.get(self._path)
        return _FakeSnapshot(exists=data is not None, data=dict(data) if isinstance(data, dict) else None)


class _FakeQuery:
    def __init__(self, *, db: "_FakeDB", name: str, n: int) -> None:
        self._db = db
        self._name = name
        self._n = n

    def stream(self):
        if self._db.fail_with is not None:
            raise self._db.fail_with
        docs = [v for k, v in self._db.store.items() if k.startswith(f"{self._name}/")]
        return iter(docs[: self._n])


class _FakeCollectionRef:
    def __init__(self, *, db: "_FakeDB", name: str) -> None:
        self._db = db
        self._name = name

    def document(self, doc_id: str) -> _FakeDocRef:
        return _FakeDocRef(db=self._db, path=f"{self._name}/{doc_id}")

    def limit(self, n: int) -> _FakeQuery:
        return _FakeQuery(db=self._db, name=self._name, n=n)


class _FakeTransaction:
    def __init__(self, *, db: "_FakeDB") -> None:
        self._db = db

    def set(self, ref: _FakeDocRef, doc: dict) -> None:
        self._db.store[ref._path] = dict(doc)
        self._db.writes += 1

    def delete(self, ref: _FakeDocRef) -> None:
        self._db.store.pop(ref._path, None)
        self._db.deletes += 1


class _FakeDB:
    def __init__(self) -> None:
        self.store: dict[str, dict] = {}
        self.fail_with: Exception | None = None
        self.writes = 0
        self.deletes = 0

    def collection(self, name: str) -> _FakeCollectionRef:
        return _FakeCollectionRef(db=self, name=name)

    def transaction(self) -> _FakeTransaction:
        return _FakeTransaction(db=self)


class _FakeFirestoreModule:
    @staticmethod
    def transactional(fn):
        def _runner(txn):
            return fn(txn)

        return _runner


def _record(concept_id: str, *ids: str) -> ConcordanceRecord:
    return ConcordanceRecord(concept_id=concept_id, concorded_ids=list(ids))


class TestFirestoreConcordanceStore(unittest.TestCase):
    def setUp(self) -> None:
        self.db = _FakeDB()
        self.store = FirestoreConcordanceStore(
            client=self.db,
            collection="concordances",
            firestore_module=_FakeFirestoreModule(),
        )

    def test_upsert_classifies_by_pre_image(self) -> None:
        self.assertEqual(self.store.upsert(_record("c1", "1", "2")), StorageOutcome.CREATED)
        self.assertEqual(self.store.upsert(_record("c1", "3")), StorageOutcome.UPDATED)
        self.assertEqual(self.db.store["concordances/c1"], {"conceptId": "c1", "concordedIds": ["3"]})
        self.assertEqual(self.db.writes, 2)

    def test_read_hit_and_miss(self) -> None:
        self.store.upsert(_record("c1", "1"))
        self.assertEqual(self.store.read("c1"), _record("c1", "1"))

        miss = self.store.read("nope")
        self.assertFalse(miss.found)

    def test_delete_existing_then_missing(self) -> None:
        self.store.upsert(_record("c1", "1"))
        self.assertEqual(self.store.delete("c1"), StorageOutcome.DELETED)
        self.assertEqual(self.store.delete("c1"), StorageOutcome.NOT_FOUND)
        # The second delete found nothing and issued no delete.
        self.assertEqual(self.db.deletes, 1)
        self.assertFalse(self.store.read("c1").found)

    def test_backend_failures_are_wrapped(self) -> None:
        self.db.fail_with = ConnectionError("unavailable")
        for call in (
            lambda: self.store.read("c1"),
            lambda: self.store.upsert(_record("c1", "1")),
            lambda: self.store.delete("c1"),
            self.store.healthcheck,
        ):
            with self.assertRaises(ConcordanceStoreError) as ctx:
                call()
            self.assertEqual(ctx.exception.dependency, "store")
            self.assertIsInstance(ctx.exception.__cause__, ConnectionError)

    def test_unreadable_document_is_a_store_error(self) -> None:
        self.db.store["concordances/c1"] = {"conceptId": "c1", "concordedIds": "not-a-list"}
        with self.assertRaises(ConcordanceStoreError):
            self.store.read("c1")

    def test_healthcheck_reads_collection(self) -> None:
        self.assertIsNone(self.store.healthcheck())
        self.assertEqual(self.store.collection, "concordances")


class TestInMemoryConcordanceStore(unittest.TestCase):
    def test_same_outcomes_as_firestore(self) -> None:
        store = InMemoryConcordanceStore({"seed": ["x"]})
        self.assertEqual(len(store), 1)
        self.assertEqual(store.read("seed"), _record("seed", "x"))

        self.assertEqual(store.upsert(_record("c1", "1")), StorageOutcome.CREATED)
        self.assertEqual(store.upsert(_record("c1", "2")), StorageOutcome.UPDATED)
        self.assertEqual(store.read("c1").concorded_ids, ["2"])

        self.assertEqual(store.delete("c1"), StorageOutcome.DELETED)
        self.assertEqual(store.delete("c1"), StorageOutcome.NOT_FOUND)
        self.assertIsNone(store.healthcheck())
