"""
Entrypoint: `python -m concordances_rw [flags]`.

Every flag falls back to its environment variable, so Cloud Run deploys can be
configured purely through env.
"""

from __future__ import annotations

import argparse
import logging
import os
from typing import Mapping, Optional, Sequence

import uvicorn

from concordances_rw.common.config import AppConfig, NOTIFIER_BACKENDS, STORE_BACKENDS
from concordances_rw.common.config_contract import validate_or_exit
from concordances_rw.common.logging import init_structured_logging, log_event
from concordances_rw.concordances.app import create_app

logger = logging.getLogger("concordances_rw")

# flag dest -> env var it overrides
_FLAG_ENV = {
    "app_system_code": "APP_SYSTEM_CODE",
    "app_name": "APP_NAME",
    "port": "APP_PORT",
    "firestore_project_id": "FIRESTORE_PROJECT_ID",
    "firestore_database": "FIRESTORE_DATABASE",
    "collection": "CONCORDANCES_COLLECTION",
    "pubsub_project_id": "PUBSUB_PROJECT_ID",
    "topic_id": "CONCORDANCES_TOPIC_ID",
    "publish_timeout_s": "PUBSUB_PUBLISH_TIMEOUT_S",
    "store_backend": "STORE_BACKEND",
    "notifier_backend": "NOTIFIER_BACKEND",
    "log_level": "LOG_LEVEL",
    "panic_guide_url": "PANIC_GUIDE_URL",
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="concordances-rw", description="Reads / writes concorded concepts")
    p.add_argument("--app-system-code", help="System code of the application (env APP_SYSTEM_CODE)")
    p.add_argument("--app-name", help="Application name (env APP_NAME)")
    p.add_argument("--port", help="Port to listen on (env APP_PORT)")
    p.add_argument("--firestore-project-id", help="Firestore project (env FIRESTORE_PROJECT_ID)")
    p.add_argument("--firestore-database", help="Firestore database (env FIRESTORE_DATABASE)")
    p.add_argument("--collection", help="Concordances collection (env CONCORDANCES_COLLECTION)")
    p.add_argument("--pubsub-project-id", help="Pub/Sub project (env PUBSUB_PROJECT_ID)")
    p.add_argument("--topic-id", help="Notification topic id (env CONCORDANCES_TOPIC_ID)")
    p.add_argument("--publish-timeout-s", help="Pub/Sub publish timeout in seconds (env PUBSUB_PUBLISH_TIMEOUT_S)")
    p.add_argument("--store-backend", choices=STORE_BACKENDS, help="Store back-end (env STORE_BACKEND)")
    p.add_argument("--notifier-backend", choices=NOTIFIER_BACKENDS, help="Notifier back-end (env NOTIFIER_BACKEND)")
    p.add_argument("--log-level", help="Log level (env LOG_LEVEL)")
    p.add_argument("--panic-guide-url", help="Panic guide link shown in health checks (env PANIC_GUIDE_URL)")
    return p


def resolve_env(args: argparse.Namespace, base: Mapping[str, str]) -> dict[str, str]:
    env = dict(base)
    for dest, name in _FLAG_ENV.items():
        v = getattr(args, dest, None)
        if v is not None and str(v).strip():
            env[name] = str(v)
    return env


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    env = resolve_env(args, os.environ)

    try:
        config = AppConfig.from_env(env)
    except ValueError as e:
        print(f"invalid configuration: {e}", flush=True)
        raise SystemExit(1) from e

    validate_or_exit(config.app_system_code, env=env)
    init_structured_logging(service=config.app_system_code, level=config.log_level)
    log_event(
        logger,
        "startup.config",
        message=f"System code: {config.app_system_code}, App Name: {config.app_name}, Port: {config.port}",
    )

    app = create_app(config)
    uvicorn.run(app, host="0.0.0.0", port=config.port, log_level=config.log_level.lower(), access_log=False)


if __name__ == "__main__":
    main()
