"""
Pub/Sub attributes attached to every concordance notification.

Attributes travel next to the message body, never inside it: consumers of the
S3-style body see exactly the same bytes whether or not they read attributes.
Keys are lowercase snake_case; values are non-empty strings.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import Any, Mapping

REQUIRED_PUBSUB_ATTRIBUTES: tuple[str, ...] = (
    "event_type",
    "schema_version",
    "producer",
    "environment",
)

CONCORDANCE_CHANGED_EVENT_TYPE = "concordance.changed"
NOTIFICATION_SCHEMA_VERSION = "1"

_MAX_LEN = {"event_type": 256, "schema_version": 32, "producer": 128, "environment": 64}


def _clean(v: Any, *, max_len: int = 256) -> str:
    s = "" if v is None else " ".join(str(v).splitlines()).strip()
    return s[:max_len]


def resolve_environment() -> str:
    for name in ("ENVIRONMENT", "ENV", "APP_ENV"):
        v = _clean(os.getenv(name), max_len=_MAX_LEN["environment"])
        if v:
            return v
    return "unknown"


@dataclass(frozen=True)
class NotificationAttributes:
    event_type: str
    schema_version: str
    producer: str
    environment: str

    def as_pubsub(self) -> dict[str, str]:
        return validate_standard_attributes(asdict(self))


def build_standard_attributes(
    *,
    event_type: str,
    schema_version: str,
    producer: str,
    environment: str,
) -> dict[str, str]:
    return NotificationAttributes(
        event_type=event_type,
        schema_version=schema_version,
        producer=producer,
        environment=environment,
    ).as_pubsub()


def validate_standard_attributes(attributes: Mapping[str, Any]) -> dict[str, str]:
    """
    Return the required keys, cleaned and truncated.

    Raises ValueError naming every required key that is absent or blank.
    """
    cleaned = {k: _clean(attributes.get(k), max_len=_MAX_LEN[k]) for k in REQUIRED_PUBSUB_ATTRIBUTES}
    missing = [k for k, v in cleaned.items() if not v]
    if missing:
        raise ValueError(f"missing required pubsub attributes: {missing}")
    return cleaned
