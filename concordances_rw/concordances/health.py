"""
Admin endpoints: aggregated health, good-to-go and build info.

- /__health  always 200; the document's `ok` reflects every check
- /__gtg     200 "OK" when all checks pass, else 503 with the first failure
- /__build-info  build fingerprint
- /healthz   process liveness (no dependency calls)
"""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from concordances_rw.common.config import AppConfig
from concordances_rw.common.logging import log_event
from concordances_rw.concordances.errors import NotificationError
from concordances_rw.messaging.notifier import Notifier
from concordances_rw.observability.build_fingerprint import get_build_fingerprint
from concordances_rw.persistence.concordance_store import ConcordanceStore

logger = logging.getLogger(__name__)

HEALTH_PATH = "/__health"
GTG_PATH = "/__gtg"
BUILD_INFO_PATH = "/__build-info"

APP_DESCRIPTION = "Stores concordances and notifies downstream services of changes"


@dataclass(frozen=True)
class HealthCheck:
    id: str
    name: str
    severity: int
    business_impact: str
    technical_summary: str
    panic_guide: str
    failure_summary: str
    checker: Callable[[], str]


@dataclass(frozen=True)
class GtgStatus:
    good_to_go: bool
    message: str = ""


class HealthService:
    def __init__(self, *, config: AppConfig, store: ConcordanceStore, notifier: Notifier) -> None:
        self._config = config
        self._store = store
        self._notifier = notifier
        self.checks: list[HealthCheck] = [self._store_check(), self._topic_check()]

    def store_checker(self) -> str:
        self._store.healthcheck()
        return "Firestore connection is healthy"

    def topic_checker(self) -> str:
        if not self._notifier.healthcheck():
            raise NotificationError("notification topic could not be described")
        return "Pub/Sub topic is reachable"

    def _store_check(self) -> HealthCheck:
        return HealthCheck(
            id="concordances-store",
            name="Concordances store (Firestore)",
            severity=1,
            business_impact=(
                "Concordances cannot be read, stored or deleted, and downstream services are not "
                "notified of created, updated or deleted concordance records."
            ),
            technical_summary=(
                "Checks that the service can reach Firestore and read the concordances collection. "
                "Failure may be due to an incorrect project, database or collection name, invalid "
                "credentials, or missing Firestore permissions."
            ),
            panic_guide=self._config.panic_guide_url,
            failure_summary="Cannot connect to the concordances store",
            checker=self.store_checker,
        )

    def _topic_check(self) -> HealthCheck:
        return HealthCheck(
            id="concordances-topic",
            name="Concordances notification topic (Pub/Sub)",
            severity=1,
            business_impact=(
                "Downstream services are not notified of created, updated or deleted concordance records."
            ),
            technical_summary=(
                "Checks that the service can describe the notification topic. Failure may be due to an "
                "incorrect project or topic id, invalid credentials, or missing Pub/Sub permissions."
            ),
            panic_guide=self._config.panic_guide_url,
            failure_summary="Cannot send notifications to the concordances topic",
            checker=self.topic_checker,
        )

    def run_check(self, check: HealthCheck) -> dict[str, Any]:
        try:
            output = check.checker()
            ok = True
        except Exception as e:
            output = f"{check.failure_summary}: {e}"
            ok = False
            log_event(logger, "health.check_failed", severity="WARNING", check=check.id, error=str(e))
        return {
            "id": check.id,
            "name": check.name,
            "ok": ok,
            "severity": check.severity,
            "businessImpact": check.business_impact,
            "technicalSummary": check.technical_summary,
            "panicGuide": check.panic_guide,
            "checkOutput": output,
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }

    def health_document(self) -> dict[str, Any]:
        results = [self.run_check(c) for c in self.checks]
        return {
            "schemaVersion": 1,
            "systemCode": self._config.app_system_code,
            "name": self._config.app_name,
            "description": APP_DESCRIPTION,
            "checks": results,
            "ok": all(r["ok"] for r in results),
        }

    def _gtg_status(self, check: HealthCheck) -> GtgStatus:
        try:
            check.checker()
        except Exception as e:
            return GtgStatus(good_to_go=False, message=f"{check.failure_summary}: {e}")
        return GtgStatus(good_to_go=True)

    def gtg(self) -> GtgStatus:
        """
        Run all checks in parallel; return as soon as one fails.
        """
        pool = ThreadPoolExecutor(max_workers=max(1, len(self.checks)), thread_name_prefix="gtg")
        try:
            pending = {pool.submit(self._gtg_status, c) for c in self.checks}
            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for fut in done:
                    status = fut.result()
                    if not status.good_to_go:
                        return status
            return GtgStatus(good_to_go=True)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)


def build_admin_router(*, config: AppConfig, health: HealthService) -> APIRouter:
    router = APIRouter(tags=["admin"])

    @router.get(HEALTH_PATH)
    def health_endpoint() -> Response:
        return JSONResponse(health.health_document(), status_code=200)

    @router.get(GTG_PATH)
    def gtg_endpoint() -> Response:
        status = health.gtg()
        if not status.good_to_go:
            return PlainTextResponse(status.message, status_code=503, headers={"Cache-Control": "no-store"})
        return PlainTextResponse("OK", status_code=200, headers={"Cache-Control": "no-store"})

    @router.get(BUILD_INFO_PATH)
    def build_info_endpoint() -> dict[str, Any]:
        return get_build_fingerprint()

    @router.get("/healthz")
    def healthz() -> dict[str, Any]:
        return {"status": "ok", "service": config.app_system_code}

    return router
