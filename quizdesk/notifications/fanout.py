"""
Notification fan-out to a roster.

Recipients are sent to in batches of ten. Per-recipient failures are
counted into errorCount and never raised; only a recipient list that cannot
be enumerated raises.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from ..exceptions import DeliveryError, RecipientLookupError
from ..models import LearnerRef
from .batch import DEFAULT_BATCH_SIZE, BatchFailure, run_in_batches
from .messages import MessageBuilder
from .transport import DeliveryReceipt, NotificationTransport


@dataclass
class NotifyResult:
    """Delivery tally of one fan-out."""

    success_count: int = 0
    error_count: int = 0
    batches: int = 0
    failures: list[DeliveryError] = field(default_factory=list)


def _receipt_error(outcome: Any) -> str | None:
    if isinstance(outcome, DeliveryReceipt) and not outcome.ok:
        return outcome.error or "delivery failed"
    if outcome is False:
        return "delivery failed"
    return None


async def notify(
    recipients: Iterable[LearnerRef],
    message_builder: MessageBuilder,
    transport: NotificationTransport,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> NotifyResult:
    """
    Send one notification per recipient.

    Args:
        recipients: Learners to notify
        message_builder: Builds the notification for a learner
        transport: Single-recipient send primitive
        batch_size: Maximum concurrent sends

    Returns:
        NotifyResult with success and error counts

    Raises:
        RecipientLookupError: If recipients cannot be enumerated
    """
    try:
        learners = list(recipients)
    except Exception as e:
        raise RecipientLookupError(f"Could not enumerate recipients: {e}") from e

    async def send_one(learner: LearnerRef) -> Any:
        return await transport.send(message_builder(learner))

    report = await run_in_batches(learners, send_one, batch_size, classify=_receipt_error)

    failures = [_to_delivery_error(f) for f in report.failures]
    for failure in failures:
        logger.warning("{}", failure)

    logger.info(
        "Notified {} recipients in {} batches: {} sent, {} failed",
        len(learners),
        report.batches,
        report.success_count,
        report.error_count,
    )
    return NotifyResult(
        success_count=report.success_count,
        error_count=report.error_count,
        batches=report.batches,
        failures=failures,
    )


def _to_delivery_error(failure: BatchFailure[LearnerRef]) -> DeliveryError:
    return DeliveryError(failure.item.id, failure.error)
