"""
Read / write / delete orchestration for concordance records.

Policy:
- read never notifies
- write/delete mutate the store first; only a successful mutation is followed by
  a notification
- a failed notification turns the whole operation into ERROR even though the
  store mutation stands (callers get 503; the record is durable, downstream
  consumers were not told). Delete follows the same rule as write.

Every operation returns an outcome plus the DependencyError that caused an
ERROR (None otherwise). Nothing here knows about HTTP.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from concordances_rw.common.logging import log_event
from concordances_rw.concordances.errors import DependencyError
from concordances_rw.concordances.models import ConcordanceRecord, StorageOutcome
from concordances_rw.messaging.notifier import Notifier
from concordances_rw.persistence.concordance_store import ConcordanceStore

logger = logging.getLogger(__name__)

ReadResult = Tuple[ConcordanceRecord, Optional[DependencyError]]
MutationResult = Tuple[StorageOutcome, Optional[DependencyError]]

_WRITE_OUTCOMES = frozenset({StorageOutcome.CREATED, StorageOutcome.UPDATED})
_DELETE_OUTCOMES = frozenset({StorageOutcome.DELETED, StorageOutcome.NOT_FOUND})


class ConcordancesRwService:
    def __init__(self, *, store: ConcordanceStore, notifier: Notifier) -> None:
        self._store = store
        self._notifier = notifier

    @property
    def store(self) -> ConcordanceStore:
        return self._store

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def read(self, concept_id: str) -> ReadResult:
        try:
            return self._store.read(concept_id), None
        except DependencyError as e:
            self._log_dependency_failure(e, operation="read", concept_id=concept_id)
            return ConcordanceRecord.empty(), e

    def write(self, record: ConcordanceRecord) -> MutationResult:
        try:
            outcome = self._store.upsert(record)
        except DependencyError as e:
            self._log_dependency_failure(e, operation="write", concept_id=record.concept_id)
            return StorageOutcome.ERROR, e
        if outcome not in _WRITE_OUTCOMES:
            raise RuntimeError(f"store returned {outcome!r} for an upsert")

        err = self._notify(record.concept_id, operation="write", outcome=outcome)
        if err is not None:
            return StorageOutcome.ERROR, err

        log_event(logger, "concordances.written", concept_id=record.concept_id, outcome=outcome.value)
        return outcome, None

    def delete(self, concept_id: str) -> MutationResult:
        try:
            outcome = self._store.delete(concept_id)
        except DependencyError as e:
            self._log_dependency_failure(e, operation="delete", concept_id=concept_id)
            return StorageOutcome.ERROR, e
        if outcome not in _DELETE_OUTCOMES:
            raise RuntimeError(f"store returned {outcome!r} for a delete")

        if outcome is StorageOutcome.NOT_FOUND:
            return outcome, None

        err = self._notify(concept_id, operation="delete", outcome=outcome)
        if err is not None:
            return StorageOutcome.ERROR, err

        log_event(logger, "concordances.deleted", concept_id=concept_id, outcome=outcome.value)
        return outcome, None

    def _notify(self, concept_id: str, *, operation: str, outcome: StorageOutcome) -> Optional[DependencyError]:
        try:
            self._notifier.send_message(concept_id)
        except DependencyError as e:
            # The store mutation already happened and is not rolled back.
            self._log_dependency_failure(
                e,
                operation=operation,
                concept_id=concept_id,
                stored_outcome=outcome.value,
            )
            return e
        return None

    @staticmethod
    def _log_dependency_failure(err: DependencyError, *, operation: str, concept_id: str, **fields: object) -> None:
        if err.dependency == "notification":
            event_type = "concordances.notify_failed"
        elif operation == "read":
            event_type = "concordances.read_failed"
        else:
            event_type = "concordances.store_failed"
        log_event(
            logger,
            event_type,
            severity="ERROR",
            dependency=err.dependency,
            operation=operation,
            concept_id=concept_id,
            error=str(err),
            **fields,
        )
