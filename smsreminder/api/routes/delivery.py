"""
Scheduler callback endpoint.

The job scheduler calls this at fire time and retries on any non-2xx
response, so outcomes that must not be retried answer 200 and the retry
signal answers 503.
"""

import json

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from smsreminder.api.dependencies import (
    get_callback_url,
    get_delivery_worker,
    get_signature_verifier,
)
from smsreminder.api.middleware.error_handler import build_error_response
from smsreminder.application.dto.requests import DeliveryCallbackRequest
from smsreminder.application.dto.responses import DeliveryResponse, ErrorResponse
from smsreminder.config import get_logger
from smsreminder.core.exceptions import SchedulingInfrastructureError, ValidationError
from smsreminder.core.interfaces.delivery import ISignatureVerifier
from smsreminder.core.services import DeliveryReport, DeliveryWorker

logger = get_logger(__name__)

router = APIRouter(prefix="/api/reminders", tags=["delivery"])

SIGNATURE_HEADER = "Upstash-Signature"


def _parse_callback(body: bytes) -> DeliveryCallbackRequest:
    try:
        payload = json.loads(body or b"{}")
        request = DeliveryCallbackRequest.model_validate(payload)
    except (ValueError, PydanticValidationError) as e:
        raise ValidationError.single("body", "Request body must be a JSON object") from e

    if not request.reminder_id:
        raise ValidationError.single("reminderId", "Reminder ID is required")
    return request


def _report_response(report: DeliveryReport) -> JSONResponse:
    response = DeliveryResponse(
        reminder_id=report.reminder_id,
        outcome=report.outcome.value,
        status=report.status,
        retry_count=report.retry_count,
        message_id=report.channel_message_id,
        error=report.error.message if report.error else None,
    )
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE if report.should_retry else status.HTTP_200_OK
    )
    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(mode="json", by_alias=True),
    )


@router.post(
    "/deliver",
    response_model=DeliveryResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        503: {"model": DeliveryResponse},
    },
)
async def deliver_reminder(
    request: Request,
    worker: DeliveryWorker = Depends(get_delivery_worker),
    verifier: ISignatureVerifier = Depends(get_signature_verifier),
    callback_url: str | None = Depends(get_callback_url),
) -> JSONResponse:
    """
    Deliver a due reminder.

    Safe to call any number of times for the same reminder.
    """
    body = await request.body()

    if verifier.enabled:
        verifier.verify(request.headers.get(SIGNATURE_HEADER), body, url=callback_url)

    callback = _parse_callback(body)

    try:
        report = await worker.handle(callback.reminder_id)
    except SchedulingInfrastructureError as e:
        # Store unreachable: ask the scheduler to come back later
        return build_error_response(request, e, status.HTTP_503_SERVICE_UNAVAILABLE)

    return _report_response(report)
