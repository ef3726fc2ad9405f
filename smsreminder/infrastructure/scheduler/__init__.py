"""Job scheduler implementations."""

from smsreminder.infrastructure.scheduler.qstash import (
    QStashJobScheduler,
    QStashSignatureVerifier,
    body_hash,
    compute_delay_seconds,
)

__all__ = [
    "QStashJobScheduler",
    "QStashSignatureVerifier",
    "body_hash",
    "compute_delay_seconds",
]
