from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

DEFAULT_APP_SYSTEM_CODE = "concordances-rw"
DEFAULT_APP_NAME = "Concordances RW"
DEFAULT_PORT = 8080
DEFAULT_FIRESTORE_DATABASE = "(default)"
DEFAULT_COLLECTION = "concordances"
DEFAULT_PUBLISH_TIMEOUT_S = 10.0
DEFAULT_PANIC_GUIDE_URL = "DESIGN.md"

STORE_BACKENDS = ("firestore", "memory")
NOTIFIER_BACKENDS = ("pubsub", "memory")


def _get(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        v = env.get(name)
        if v is None:
            continue
        s = str(v).strip()
        if s:
            return s
    return None


def _parse_int(name: str, raw: Optional[str], default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _parse_float(name: str, raw: Optional[str], default: float) -> float:
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _choice(name: str, raw: Optional[str], choices: tuple[str, ...]) -> str:
    v = (raw or choices[0]).lower()
    if v not in choices:
        raise ValueError(f"{name} must be one of {list(choices)}, got {raw!r}")
    return v


@dataclass(frozen=True)
class AppConfig:
    """
    Runtime configuration for the concordances read/write service.

    Store location is (firestore_project_id, firestore_database); the store
    identifier is the collection. Topic location is pubsub_project_id; the
    topic identifier is topic_id.
    """

    app_system_code: str = DEFAULT_APP_SYSTEM_CODE
    app_name: str = DEFAULT_APP_NAME
    port: int = DEFAULT_PORT

    firestore_project_id: Optional[str] = None
    firestore_database: str = DEFAULT_FIRESTORE_DATABASE
    collection: str = DEFAULT_COLLECTION

    pubsub_project_id: Optional[str] = None
    topic_id: Optional[str] = None
    publish_timeout_s: float = DEFAULT_PUBLISH_TIMEOUT_S

    store_backend: str = "firestore"
    notifier_backend: str = "pubsub"
    log_level: str = "INFO"
    panic_guide_url: str = DEFAULT_PANIC_GUIDE_URL

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "AppConfig":
        e: Mapping[str, str] = env if env is not None else os.environ
        port = _parse_int("APP_PORT", _get(e, "APP_PORT", "PORT"), DEFAULT_PORT)
        if not (0 < port < 65536):
            raise ValueError(f"APP_PORT out of range: {port}")
        timeout_s = _parse_float("PUBSUB_PUBLISH_TIMEOUT_S", _get(e, "PUBSUB_PUBLISH_TIMEOUT_S"), DEFAULT_PUBLISH_TIMEOUT_S)
        if timeout_s <= 0.0:
            raise ValueError(f"PUBSUB_PUBLISH_TIMEOUT_S must be > 0, got {timeout_s}")

        return cls(
            app_system_code=_get(e, "APP_SYSTEM_CODE") or DEFAULT_APP_SYSTEM_CODE,
            app_name=_get(e, "APP_NAME") or DEFAULT_APP_NAME,
            port=port,
            firestore_project_id=_get(e, "FIRESTORE_PROJECT_ID", "GOOGLE_CLOUD_PROJECT"),
            firestore_database=_get(e, "FIRESTORE_DATABASE") or DEFAULT_FIRESTORE_DATABASE,
            collection=_get(e, "CONCORDANCES_COLLECTION") or DEFAULT_COLLECTION,
            pubsub_project_id=_get(e, "PUBSUB_PROJECT_ID", "GOOGLE_CLOUD_PROJECT"),
            topic_id=_get(e, "CONCORDANCES_TOPIC_ID"),
            publish_timeout_s=timeout_s,
            store_backend=_choice("STORE_BACKEND", _get(e, "STORE_BACKEND"), STORE_BACKENDS),
            notifier_backend=_choice("NOTIFIER_BACKEND", _get(e, "NOTIFIER_BACKEND"), NOTIFIER_BACKENDS),
            log_level=(_get(e, "LOG_LEVEL") or "INFO").upper(),
            panic_guide_url=_get(e, "PANIC_GUIDE_URL") or DEFAULT_PANIC_GUIDE_URL,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
