"""
Reminder intake and management endpoints.
"""

from fastapi import APIRouter, Depends, Query

from smsreminder.api.dependencies import (
    get_cancellation_service,
    get_client_identity,
    get_reminder_store,
    get_schedule_reminder_use_case,
)
from smsreminder.application.dto.requests import ScheduleReminderRequest
from smsreminder.application.dto.responses import (
    ErrorResponse,
    ReminderListResponse,
    ReminderResponse,
    ScheduleReminderResponse,
)
from smsreminder.application.use_cases import ScheduleReminderUseCase
from smsreminder.core.entities.reminder import ReminderStatus
from smsreminder.core.interfaces.storage import IReminderStore
from smsreminder.core.services import CancellationService

router = APIRouter(prefix="/api/reminders", tags=["reminders"])


@router.post(
    "",
    response_model=ScheduleReminderResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def schedule_reminder(
    request: ScheduleReminderRequest,
    identity: str = Depends(get_client_identity),
    use_case: ScheduleReminderUseCase = Depends(get_schedule_reminder_use_case),
) -> ScheduleReminderResponse:
    """
    Schedule an SMS reminder.

    Rate limited per client. Validation failures list every failed field.
    """
    result = await use_case.execute(request, identity)
    return ScheduleReminderResponse(
        reminder_id=result.reminder_id,
        scheduled_for=result.fire_at,
    )


@router.get("", response_model=ReminderListResponse)
async def list_reminders(
    status: ReminderStatus | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    store: IReminderStore = Depends(get_reminder_store),
) -> ReminderListResponse:
    """List reminders, newest fire time first."""
    reminders = await store.list_reminders(status=status, limit=limit, offset=offset)
    return ReminderListResponse(
        reminders=[ReminderResponse.from_entity(r) for r in reminders],
        total=len(reminders),
    )


@router.get(
    "/{reminder_id}",
    response_model=ReminderResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_reminder(
    reminder_id: str,
    store: IReminderStore = Depends(get_reminder_store),
) -> ReminderResponse:
    """Get a reminder's current status."""
    reminder = await store.get(reminder_id)
    return ReminderResponse.from_entity(reminder)


@router.post(
    "/{reminder_id}/cancel",
    response_model=ReminderResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_reminder(
    reminder_id: str,
    service: CancellationService = Depends(get_cancellation_service),
) -> ReminderResponse:
    """Cancel a reminder that has not been delivered yet."""
    reminder = await service.cancel(reminder_id)
    return ReminderResponse.from_entity(reminder)
