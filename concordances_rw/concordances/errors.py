from __future__ import annotations


class ConcordancesError(Exception):
    """Base class for errors raised by this service."""


class DependencyError(ConcordancesError):
    """
    A downstream dependency (store or topic) failed.

    `dependency` names the failed subsystem for logs; clients only ever see 503.
    """

    dependency = "unknown"


class ConcordanceStoreError(DependencyError):
    dependency = "store"


class NotificationError(DependencyError):
    dependency = "notification"


class InvalidPayloadError(ConcordancesError):
    """Client-caused validation failure (rendered as 400)."""
