from __future__ import annotations

import asyncio
import logging
import re

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from concordances_rw.common.logging import log_event
from concordances_rw.concordances.errors import DependencyError, InvalidPayloadError
from concordances_rw.concordances.models import ConcordanceRecord, StorageOutcome
from concordances_rw.concordances.service import ConcordancesRwService

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)

LOG_MSG_503 = "Error {} concordances"
LOG_MSG_404 = "Concordances not found"
ERROR_MSG_BAD_BODY = "Invalid payload."
ERROR_MSG_BAD_JSON = "Corrupted JSON"
ERROR_MSG_MISMATCHED_CONCEPT_ID = "Concept UUID in payload is different from UUID path parameter"
ERROR_MSG_MISSING_CONCORDED_IDS = "Payload has no concorded UUIDs to store."
ERROR_MSG_BAD_UUID = "Invalid concept UUID"

_WRITE_STATUS = {
    StorageOutcome.CREATED: 201,
    StorageOutcome.UPDATED: 200,
}
_DELETE_STATUS = {
    StorageOutcome.DELETED: 204,
}


def is_valid_uuid(value: str) -> bool:
    # fullmatch: a trailing newline must not pass.
    return UUID_PATTERN.fullmatch(value or "") is not None


def json_error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"message": message}, status_code=status_code)


def parse_payload(concept_id: str, body: bytes) -> ConcordanceRecord:
    """
    Validate a PUT body against the path id. Checks run in order and the first
    failure wins: JSON shape, matching concept id, non-empty concorded ids.
    """
    if not body or not body.strip():
        raise InvalidPayloadError(ERROR_MSG_BAD_JSON)
    try:
        record = ConcordanceRecord.model_validate_json(body)
    except ValidationError as e:
        raise InvalidPayloadError(ERROR_MSG_BAD_JSON) from e

    if record.concept_id != concept_id:
        raise InvalidPayloadError(
            f"{ERROR_MSG_MISMATCHED_CONCEPT_ID} "
            f"(path: {concept_id}, payload: {record.concept_id or '<missing>'})"
        )
    if not record.concorded_ids:
        raise InvalidPayloadError(ERROR_MSG_MISSING_CONCORDED_IDS)
    return record


def _bad_uuid(concept_id: str) -> JSONResponse:
    log_event(logger, "concordances.invalid_uuid", concept_id=concept_id)
    return json_error(f"{ERROR_MSG_BAD_UUID}: {concept_id}", 400)


def _unavailable(action: str, concept_id: str, err: DependencyError | None) -> JSONResponse:
    msg = LOG_MSG_503.format(action)
    log_event(
        logger,
        "concordances.unavailable",
        severity="ERROR",
        concept_id=concept_id,
        dependency=getattr(err, "dependency", "unknown"),
        error=str(err) if err is not None else None,
    )
    return json_error(msg, 503)


def _not_found(concept_id: str) -> JSONResponse:
    log_event(logger, "concordances.not_found", message=f"{LOG_MSG_404} for {concept_id}", concept_id=concept_id)
    return json_error(LOG_MSG_404, 404)


def build_concordances_router(service: ConcordancesRwService) -> APIRouter:
    """
    Routes for /concordances/{uuid}, bound to the given service instance.
    """
    router = APIRouter(prefix="/concordances", tags=["concordances"])

    @router.get("/{concept_id}")
    def get_concordance(concept_id: str) -> Response:
        if not is_valid_uuid(concept_id):
            return _bad_uuid(concept_id)

        record, err = service.read(concept_id)
        if err is not None:
            return _unavailable("retrieving", concept_id, err)
        if not record.found:
            return _not_found(concept_id)
        return JSONResponse(record.to_response(), status_code=200)

    @router.put("/{concept_id}")
    async def put_concordance(concept_id: str, request: Request) -> Response:
        if not is_valid_uuid(concept_id):
            return _bad_uuid(concept_id)

        body = await request.body()
        try:
            record = parse_payload(concept_id, body)
        except InvalidPayloadError as e:
            msg = f"{ERROR_MSG_BAD_BODY} Error: {e}"
            log_event(logger, "concordances.invalid_payload", message=msg, concept_id=concept_id)
            return json_error(msg, 400)

        # Store + notify are blocking network calls; keep them off the event loop.
        outcome, err = await asyncio.to_thread(service.write, record)
        if outcome is StorageOutcome.ERROR:
            return _unavailable("storing", concept_id, err)
        status = _WRITE_STATUS.get(outcome)
        if status is None:
            raise RuntimeError(f"unexpected write outcome: {outcome!r}")
        return Response(status_code=status)

    @router.delete("/{concept_id}")
    def delete_concordance(concept_id: str) -> Response:
        if not is_valid_uuid(concept_id):
            return _bad_uuid(concept_id)

        outcome, err = service.delete(concept_id)
        if outcome is StorageOutcome.ERROR:
            return _unavailable("deleting", concept_id, err)
        if outcome is StorageOutcome.NOT_FOUND:
            return _not_found(concept_id)
        status = _DELETE_STATUS.get(outcome)
        if status is None:
            raise RuntimeError(f"unexpected delete outcome: {outcome!r}")
        return Response(status_code=status)

    return router
