"""
Notify — order paid / cancelled notifications.

Delivery failures are logged and never undo the state change.
"""

from storefront.notify._notifier import (
    Notifier,
    LogNotifier,
    RecordingNotifier,
    dispatch_paid,
    dispatch_cancelled,
)

__all__ = (
    "Notifier",
    "LogNotifier",
    "RecordingNotifier",
    "dispatch_paid",
    "dispatch_cancelled",
)
