"""
Change notifications for concordance writes and deletes.

Consumers parse the message body as an S3-style event and read the object key,
so the body is fixed:

    {"Records":[{"s3":{"object":{"key":"<concept id with '-' replaced by '/'>"}}}]}

Standard attributes ride alongside as Pub/Sub attributes; the body is never
altered to carry them.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Optional, Protocol

from concordances_rw.common.logging import log_event
from concordances_rw.concordances.errors import NotificationError
from concordances_rw.messaging.pubsub_attributes import (
    CONCORDANCE_CHANGED_EVENT_TYPE,
    NOTIFICATION_SCHEMA_VERSION,
    build_standard_attributes,
    resolve_environment,
)

logger = logging.getLogger(__name__)


def notification_key(concept_id: str) -> str:
    return str(concept_id).replace("-", "/")


def build_notification_message(concept_id: str) -> str:
    body = {"Records": [{"s3": {"object": {"key": notification_key(concept_id)}}}]}
    return json.dumps(body, separators=(",", ":"))


class Notifier(Protocol):
    def send_message(self, concept_id: str) -> None: ...

    def healthcheck(self) -> bool: ...


class PubSubNotifier:
    """
    Google Pub/Sub notifier for concordance changes.

    Lazy-imports `google.cloud.pubsub_v1` so tests can inject a client double.
    One publish per call; the publish future is awaited with `timeout_s`.
    """

    def __init__(
        self,
        *,
        project_id: str,
        topic_id: str,
        producer: str = "concordances-rw",
        timeout_s: float = 10.0,
        publisher_client: Any = None,
    ) -> None:
        self.project_id = str(project_id)
        self.topic_id = str(topic_id)
        self.producer = str(producer)
        self.timeout_s = float(timeout_s)

        if publisher_client is None:
            from google.cloud import pubsub_v1

            publisher_client = pubsub_v1.PublisherClient()

        self._client = publisher_client
        self._topic_path = self._client.topic_path(self.project_id, self.topic_id)

    @property
    def topic_path(self) -> str:
        return self._topic_path

    def send_message(self, concept_id: str) -> None:
        attrs = build_standard_attributes(
            event_type=CONCORDANCE_CHANGED_EVENT_TYPE,
            schema_version=NOTIFICATION_SCHEMA_VERSION,
            producer=self.producer,
            environment=resolve_environment(),
        )
        data = build_notification_message(concept_id).encode("utf-8")
        started = time.monotonic()
        try:
            future = self._client.publish(self._topic_path, data, **attrs)
            message_id = str(future.result(timeout=self.timeout_s))
        except Exception as e:
            raise NotificationError(
                f"failed to publish notification for {concept_id} to {self._topic_path}: {e}"
            ) from e

        log_event(
            logger,
            "notification.published",
            concept_id=concept_id,
            topic=self._topic_path,
            message_id=message_id,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )

    def healthcheck(self) -> bool:
        try:
            topic = self._client.get_topic(request={"topic": self._topic_path})
        except Exception as e:
            raise NotificationError(f"cannot describe Pub/Sub topic {self._topic_path}: {e}") from e
        return bool(getattr(topic, "name", ""))

    def close(self) -> None:
        """
        Best-effort shutdown for the underlying Pub/Sub client.
        """
        stop = getattr(self._client, "stop", None)
        if callable(stop):
            try:
                stop()
            except Exception:
                logger.warning("pubsub_publisher_stop_failed topic=%s", self._topic_path, exc_info=True)

    def __enter__(self) -> "PubSubNotifier":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()


class InMemoryNotifier:
    """
    Records notification bodies instead of publishing (NOTIFIER_BACKEND=memory).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.messages: list[str] = []

    def send_message(self, concept_id: str) -> None:
        body = build_notification_message(concept_id)
        with self._lock:
            self.messages.append(body)
        log_event(logger, "notification.recorded", concept_id=concept_id)

    def healthcheck(self) -> bool:
        return True

    def last_message(self) -> Optional[str]:
        with self._lock:
            return self.messages[-1] if self.messages else None
