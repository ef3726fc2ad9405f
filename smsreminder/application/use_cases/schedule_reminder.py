"""
Schedule Reminder Use Case.

Charges the caller's intake quota, then hands the request to the
intake service.
"""

from collections.abc import Callable
from datetime import datetime

from smsreminder.application.dto.requests import ScheduleReminderRequest
from smsreminder.config import get_logger
from smsreminder.core.entities.reminder import utcnow
from smsreminder.core.exceptions import RateLimitError
from smsreminder.core.interfaces.rate_limit import IRateLimiter, RateLimitBucket
from smsreminder.core.services.intake import IntakeResult, IntakeService

logger = get_logger(__name__)


class ScheduleReminderUseCase:
    """Rate-limited reminder intake."""

    def __init__(
        self,
        rate_limiter: IRateLimiter,
        intake: IntakeService,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._rate_limiter = rate_limiter
        self._intake = intake
        self._clock = clock

    async def execute(
        self,
        request: ScheduleReminderRequest,
        identity: str,
    ) -> IntakeResult:
        """
        Schedule one reminder for the given client identity.

        Raises:
            RateLimitError: the identity used up its quota for the window
            ValidationError: the request failed one or more checks
            SchedulingInfrastructureError: the store or scheduler failed
        """
        decision = await self._rate_limiter.allow(identity, RateLimitBucket.SCHEDULE)
        if not decision.allowed:
            raise RateLimitError(
                RateLimitBucket.SCHEDULE.value,
                decision.retry_after(self._clock()),
            )

        return await self._intake.submit(
            recipient=request.recipient,
            body=request.message,
            fire_at=request.fire_at,
            timezone=request.timezone,
            consent=request.consent,
        )
