"""
Build fingerprint served on /__build-info and attached to the startup log line.

Values are stamped into the container environment at build/deploy time; anything
missing reads "unknown".
"""

from __future__ import annotations

import os
from typing import Dict

REPO_ID = "concordances-rw"

# fingerprint field -> env vars consulted in order
_FIELDS: Dict[str, tuple[str, ...]] = {
    "version": ("APP_VERSION", "VERSION", "IMAGE_TAG"),
    "git_sha": ("GIT_SHA", "GITHUB_SHA", "COMMIT_SHA"),
    "build_id": ("BUILD_ID",),
    "image_ref": ("IMAGE_REF",),
    "build_time_utc": ("BUILD_TIME_UTC",),
}


def _lookup(names: tuple[str, ...]) -> str:
    for name in names:
        v = (os.getenv(name) or "").strip()
        if v:
            return v
    return "unknown"


def get_build_fingerprint() -> Dict[str, str]:
    fp = {"repo_id": REPO_ID}
    fp.update({field: _lookup(names) for field, names in _FIELDS.items()})
    return fp
