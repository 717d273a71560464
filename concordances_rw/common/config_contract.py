"""
Required-env contract, checked once at startup before the app is built.

A missing variable is reported as one machine-readable line and the process exits 1,
instead of failing later inside a request:

    CONTRACT_FAIL {"ts":...,"service":"concordances-rw","missing":[...],"required":[...]}

Which variables are required depends on the selected back-ends; the in-memory
back-ends need none.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Mapping, Sequence

# "NAME" must be set; ("A", "B") means at least one of them must be set.
EnvRequirement = str | Sequence[str]

_FIRESTORE_REQUIRED: tuple[EnvRequirement, ...] = (("FIRESTORE_PROJECT_ID", "GOOGLE_CLOUD_PROJECT"),)
_PUBSUB_REQUIRED: tuple[EnvRequirement, ...] = (
    ("PUBSUB_PROJECT_ID", "GOOGLE_CLOUD_PROJECT"),
    "CONCORDANCES_TOPIC_ID",
)


def _is_set(env: Mapping[str, str], name: str) -> bool:
    return bool(str(env.get(name) or "").strip())


def _label(req: EnvRequirement) -> str:
    return req if isinstance(req, str) else "|".join(req)


def _backend(env: Mapping[str, str], name: str, default: str) -> str:
    return (str(env.get(name) or "").strip() or default).lower()


def required_env(env: Mapping[str, str]) -> list[EnvRequirement]:
    required: list[EnvRequirement] = []
    if _backend(env, "STORE_BACKEND", "firestore") == "firestore":
        required.extend(_FIRESTORE_REQUIRED)
    if _backend(env, "NOTIFIER_BACKEND", "pubsub") == "pubsub":
        required.extend(_PUBSUB_REQUIRED)
    return required


def missing_env(env: Mapping[str, str]) -> list[str]:
    missing: list[str] = []
    for req in required_env(env):
        names = (req,) if isinstance(req, str) else tuple(req)
        if not any(_is_set(env, n) for n in names):
            missing.append(_label(req))
    return missing


def validate_or_exit(service: str, *, env: Mapping[str, str] | None = None) -> None:
    e: Mapping[str, str] = env if env is not None else os.environ
    missing = missing_env(e)
    if not missing:
        return

    payload = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "service": (service or "").strip(),
        "missing": missing,
        "required": [_label(r) for r in required_env(e)],
    }
    print("CONTRACT_FAIL " + json.dumps(payload, separators=(",", ":")), flush=True)
    raise SystemExit(1)
