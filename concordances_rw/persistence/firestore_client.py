from __future__ import annotations

import os
import sys
from typing import Any, Optional

# Env vars that only exist on managed GCP runtimes.
_MANAGED_RUNTIME_MARKERS = ("K_SERVICE", "CLOUD_RUN_JOB")


def is_local_execution() -> bool:
    """
    True for ENV=local, or when none of the Cloud Run / App Engine markers are set.
    """
    if (os.getenv("ENV") or "").strip().lower() == "local":
        return True
    if any((os.getenv(name) or "").strip() for name in _MANAGED_RUNTIME_MARKERS):
        return False
    return not any(name.startswith("GAE_") for name in os.environ)


def require_firestore_emulator_or_allow_prod(*, caller: str) -> None:
    """
    Exit(2) when a local process is about to reach real Firestore.

    Allowed locally only with FIRESTORE_EMULATOR_HOST set, or ALLOW_PROD_FIRESTORE=1.
    """
    if not is_local_execution():
        return
    if (os.getenv("FIRESTORE_EMULATOR_HOST") or "").strip():
        return
    if (os.getenv("ALLOW_PROD_FIRESTORE") or "").strip() == "1":
        return

    print(
        "ERROR: Refusing to use production Firestore from local execution.\n"
        f"caller={caller}\n"
        "\n"
        "Fix one of:\n"
        "  - export FIRESTORE_EMULATOR_HOST=127.0.0.1:8080\n"
        "  - run with STORE_BACKEND=memory\n"
        "  - export ALLOW_PROD_FIRESTORE=1 (talks to the real collection)\n",
        file=sys.stderr,
        flush=True,
    )
    raise SystemExit(2)


def get_firestore_client(*, project_id: Optional[str], database: str = "(default)") -> Any:
    """
    Firestore client for the concordances collection (ADC credentials, or the emulator).
    """
    require_firestore_emulator_or_allow_prod(caller="concordances_rw.persistence.firestore_client")
    if not project_id:
        raise RuntimeError("Firestore project is not configured. Set FIRESTORE_PROJECT_ID or GOOGLE_CLOUD_PROJECT.")

    from google.cloud import firestore

    return firestore.Client(project=project_id, database=database)
