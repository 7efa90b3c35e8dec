"""
Notification fan-out.

Batched delivery of "quiz published" and "results available" notices to
enrolled learners, with success/failure accounting.
"""

from .batch import BatchReport, chunked, run_in_batches
from .fanout import NotifyResult, notify
from .messages import Notification, quiz_published_message, results_available_message
from .transport import (
    DeliveryReceipt,
    HttpNotificationTransport,
    NotificationTransport,
    StoreNotificationTransport,
)

__all__ = [
    "BatchReport",
    "DeliveryReceipt",
    "HttpNotificationTransport",
    "Notification",
    "NotificationTransport",
    "NotifyResult",
    "StoreNotificationTransport",
    "chunked",
    "notify",
    "quiz_published_message",
    "results_available_message",
    "run_in_batches",
]
