"""Core business services."""

from smsreminder.core.services.cancellation import CancellationService
from smsreminder.core.services.delivery_worker import (
    MAX_RETRIES,
    DeliveryOutcome,
    DeliveryReport,
    DeliveryWorker,
)
from smsreminder.core.services.intake import IntakeResult, IntakeService

__all__ = [
    "IntakeService",
    "IntakeResult",
    "DeliveryWorker",
    "DeliveryReport",
    "DeliveryOutcome",
    "MAX_RETRIES",
    "CancellationService",
]
