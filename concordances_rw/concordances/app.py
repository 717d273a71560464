from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from concordances_rw.common.config import AppConfig
from concordances_rw.common.logging import install_fastapi_request_id_middleware, log_event
from concordances_rw.concordances.handlers import build_concordances_router
from concordances_rw.concordances.health import APP_DESCRIPTION, HealthService, build_admin_router
from concordances_rw.concordances.service import ConcordancesRwService
from concordances_rw.messaging.notifier import InMemoryNotifier, Notifier, PubSubNotifier
from concordances_rw.observability.build_fingerprint import get_build_fingerprint
from concordances_rw.persistence.concordance_store import (
    ConcordanceStore,
    FirestoreConcordanceStore,
    InMemoryConcordanceStore,
)
from concordances_rw.persistence.firestore_client import get_firestore_client

logger = logging.getLogger(__name__)


def build_store(config: AppConfig) -> ConcordanceStore:
    if config.store_backend == "memory":
        return InMemoryConcordanceStore()
    client = get_firestore_client(project_id=config.firestore_project_id, database=config.firestore_database)
    return FirestoreConcordanceStore(client=client, collection=config.collection)


def build_notifier(config: AppConfig) -> Notifier:
    if config.notifier_backend == "memory":
        return InMemoryNotifier()
    if not config.pubsub_project_id or not config.topic_id:
        raise RuntimeError("Pub/Sub notifier requires PUBSUB_PROJECT_ID and CONCORDANCES_TOPIC_ID")
    return PubSubNotifier(
        project_id=config.pubsub_project_id,
        topic_id=config.topic_id,
        producer=config.app_system_code,
        timeout_s=config.publish_timeout_s,
    )


def build_service(config: AppConfig) -> ConcordancesRwService:
    return ConcordancesRwService(store=build_store(config), notifier=build_notifier(config))


def create_app(config: AppConfig, *, service: Optional[ConcordancesRwService] = None) -> FastAPI:
    """
    Build the FastAPI app with its routers bound to `service`.

    Nothing is registered globally; every call returns an independent app.
    """
    svc = service if service is not None else build_service(config)
    health = HealthService(config=config, store=svc.store, notifier=svc.notifier)

    app = FastAPI(title=config.app_name, description=APP_DESCRIPTION)
    install_fastapi_request_id_middleware(app, service=config.app_system_code)
    app.include_router(build_admin_router(config=config, health=health))
    app.include_router(build_concordances_router(svc))

    app.state.config = config
    app.state.service = svc
    app.state.health = health

    @app.on_event("startup")
    def _startup() -> None:
        log_event(
            logger,
            "startup",
            app_system_code=config.app_system_code,
            app_name=config.app_name,
            port=config.port,
            store_backend=config.store_backend,
            notifier_backend=config.notifier_backend,
            collection=config.collection,
            topic_id=config.topic_id,
            **get_build_fingerprint(),
        )

    @app.on_event("shutdown")
    def _shutdown() -> None:
        close = getattr(svc.notifier, "close", None)
        if callable(close):
            close()
        log_event(logger, "shutdown", app_system_code=config.app_system_code)

    return app
