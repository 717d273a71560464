"""
Structured JSON logging for concordances-rw.

Every line written to stdout is one JSON object (Cloud Logging jsonPayload) with:
- service, env, version, sha
- request_id, correlation_id
- event_type, severity, message, logger
- any `extra` fields passed by the caller (concept_id, dependency, outcome, ...)

The request-id middleware binds X-Request-ID for the lifetime of a request, echoes
it on the response and emits one `http.request` line per request.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

_REQUEST_ID: ContextVar[Optional[str]] = ContextVar("concordances_request_id", default=None)

# Attributes every LogRecord carries, plus the keys the formatter owns.
_RESERVED_ATTRS: frozenset[str] = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
    "service",
    "env",
    "version",
    "sha",
    "request_id",
    "correlation_id",
    "event_type",
    "severity",
    "timestamp",
}

_SEVERITIES = ("DEFAULT", "DEBUG", "INFO", "NOTICE", "WARNING", "ERROR", "CRITICAL", "ALERT", "EMERGENCY")
_SEVERITY_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}

SERVICE_NAME_DEFAULT = "concordances-rw"


def _one_line(v: Any, *, max_len: int = 2000) -> str:
    s = "" if v is None else str(v)
    s = " ".join(s.splitlines()).strip()
    return s if len(s) <= max_len else s[: max_len - 1] + "…"


def _first_env(names: tuple[str, ...], default: str, *, max_len: int = 128) -> str:
    for name in names:
        v = _one_line(os.getenv(name), max_len=max_len)
        if v:
            return v
    return default


def _severity(level: str | int | None) -> str:
    if isinstance(level, int):
        level = logging.getLevelName(level)
    s = _one_line(level or "INFO", max_len=16).upper()
    s = _SEVERITY_ALIASES.get(s, s)
    return s if s in _SEVERITIES else "INFO"


def default_service_name() -> str:
    return _first_env(("SERVICE_NAME", "APP_SYSTEM_CODE", "K_SERVICE"), SERVICE_NAME_DEFAULT)


def default_env_name() -> str:
    return _first_env(("ENVIRONMENT", "ENV", "APP_ENV"), "unknown", max_len=64)


def default_sha() -> str:
    return _first_env(("GIT_SHA", "GITHUB_SHA", "COMMIT_SHA"), "unknown", max_len=64)


def default_version() -> str:
    return _first_env(("APP_VERSION", "VERSION", "IMAGE_TAG", "K_REVISION"), "unknown")


def get_request_id() -> Optional[str]:
    return _REQUEST_ID.get()


@contextmanager
def bind_request_id(*, request_id: str | None = None) -> Iterator[str]:
    rid = _one_line(request_id, max_len=128) or uuid.uuid4().hex
    token = _REQUEST_ID.set(rid)
    try:
        yield rid
    finally:
        _REQUEST_ID.reset(token)


class JsonLogFormatter(logging.Formatter):
    def __init__(
        self,
        *,
        service: str | None = None,
        env: str | None = None,
        version: str | None = None,
        sha: str | None = None,
    ) -> None:
        super().__init__()
        self._identity = {
            "service": _one_line(service, max_len=128) or default_service_name(),
            "env": _one_line(env, max_len=64) or default_env_name(),
            "version": _one_line(version, max_len=128) or default_version(),
            "sha": _one_line(sha, max_len=64) or default_sha(),
        }

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        rid = getattr(record, "request_id", None) or get_request_id()
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "severity": _severity(getattr(record, "severity", None) or record.levelname),
            **self._identity,
            "request_id": rid,
            "correlation_id": getattr(record, "correlation_id", None) or rid,
            "event_type": _one_line(getattr(record, "event_type", None), max_len=128) or "log",
            "message": _one_line(record.getMessage(), max_len=4000),
            "logger": record.name,
        }
        if getattr(record, "service", None):
            payload["service"] = _one_line(record.service, max_len=128)

        if record.exc_info:
            payload["exception"] = "".join(traceback.format_exception(*record.exc_info))[-8000:]

        for k, v in record.__dict__.items():
            if k not in _RESERVED_ATTRS and not k.startswith("_"):
                payload[k] = v

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def init_structured_logging(
    *,
    service: str | None = None,
    env: str | None = None,
    version: str | None = None,
    sha: str | None = None,
    level: str | int | None = None,
) -> None:
    """
    Route the root logger (and uvicorn's loggers) to one JSON stdout handler.

    Calling it again replaces the previous handler.
    """
    lvl = level or (os.getenv("LOG_LEVEL") or "INFO").upper()
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter(service=service, env=env, version=version, sha=sha))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(lvl)
    logging.captureWarnings(True)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.handlers = []
        lg.propagate = True


def log_event(
    logger: logging.Logger,
    event_type: str,
    *,
    severity: str = "INFO",
    message: str | None = None,
    **fields: Any,
) -> None:
    """Log a semantic event; `event_type` is the stable key dashboards filter on."""
    lvl = logging.getLevelName(_severity(severity))
    if not isinstance(lvl, int):
        lvl = logging.INFO
    logger.log(lvl, message or event_type, extra={"event_type": event_type, **fields})


def install_fastapi_request_id_middleware(app: Any, *, service: str | None = None) -> None:
    """
    Bind X-Request-ID (falling back to X-Correlation-Id, else a fresh id) per request,
    echo it on the response and log one `http.request` line.
    """
    from starlette.requests import Request

    http_logger = logging.getLogger("http")
    svc = _one_line(service, max_len=128) or default_service_name()

    @app.middleware("http")
    async def _request_id_mw(request: Request, call_next):  # type: ignore[no-untyped-def]
        incoming = request.headers.get("x-request-id") or request.headers.get("x-correlation-id")
        started = time.perf_counter()
        status_code = 500
        with bind_request_id(request_id=incoming) as rid:
            try:
                response = await call_next(request)
                status_code = response.status_code
            finally:
                log_event(
                    http_logger,
                    "http.request",
                    service=svc,
                    method=request.method,
                    path=request.url.path,
                    status_code=status_code,
                    duration_ms=int((time.perf_counter() - started) * 1000),
                )
        response.headers["X-Request-ID"] = rid
        return response
