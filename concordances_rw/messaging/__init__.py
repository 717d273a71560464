"""
Change notifications for concordance records.

This package provides:
- The fixed S3-style notification body (`build_notification_message`)
- A Google Pub/Sub notifier (lazy-imported client)
- An in-memory notifier for local runs and tests
"""

from .notifier import InMemoryNotifier, PubSubNotifier, build_notification_message
