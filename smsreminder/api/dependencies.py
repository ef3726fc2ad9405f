"""
Dependency injection container for FastAPI.

Adapters and services are built once at startup and kept on
``app.state.container``; route handlers receive them through the
``get_*`` dependencies below, which tests override with
``app.dependency_overrides``.
"""

from dataclasses import dataclass
from datetime import timedelta

import httpx
from fastapi import Request

from smsreminder.application.use_cases import (
    ScheduleReminderUseCase,
    TranscribeAudioUseCase,
)
from smsreminder.config import Settings, get_logger
from smsreminder.core.exceptions import ConfigurationError
from smsreminder.core.interfaces import (
    IDeliveryChannel,
    IRateLimiter,
    IReminderStore,
    ISignatureVerifier,
)
from smsreminder.core.services import CancellationService, DeliveryWorker, IntakeService
from smsreminder.infrastructure.rate_limit import RedisRateLimiter
from smsreminder.infrastructure.scheduler import QStashJobScheduler, QStashSignatureVerifier
from smsreminder.infrastructure.sms import TwilioSMSChannel
from smsreminder.infrastructure.storage.sqlite import ConnectionPool, SQLiteReminderStore
from smsreminder.infrastructure.transcription import WhisperTranscriber

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Everything the request handlers need, built once per process."""

    settings: Settings
    store: IReminderStore
    rate_limiter: IRateLimiter
    channel: IDeliveryChannel
    signature_verifier: ISignatureVerifier
    intake: IntakeService
    delivery_worker: DeliveryWorker
    cancellation: CancellationService
    schedule_reminder: ScheduleReminderUseCase
    transcribe_audio: TranscribeAudioUseCase
    pool: ConnectionPool | None = None
    http_client: httpx.AsyncClient | None = None

    async def close(self) -> None:
        await self.rate_limiter.close()
        if self.http_client is not None:
            await self.http_client.aclose()
        if self.pool is not None:
            await self.pool.close()


async def build_container(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> ServiceContainer:
    """Construct and wire every adapter from settings."""
    pool = ConnectionPool.from_settings(settings.storage)
    await pool.initialize()
    store = SQLiteReminderStore(pool)

    rate_limiter = RedisRateLimiter.from_settings(settings.rate_limit)
    channel = TwilioSMSChannel.from_settings(settings.sms, client=http_client)
    scheduler = QStashJobScheduler.from_settings(settings.scheduler, client=http_client)
    verifier = QStashSignatureVerifier.from_settings(settings.scheduler)
    transcriber = WhisperTranscriber.from_settings(settings.transcription, client=http_client)

    intake = IntakeService(
        store,
        scheduler,
        callback_url=settings.scheduler.callback_url,
        max_attempts=settings.scheduler.max_attempts,
        max_message_length=settings.intake.max_message_length,
        max_horizon=timedelta(days=settings.intake.max_horizon_days),
    )
    worker = DeliveryWorker(
        store,
        channel,
        max_retries=settings.delivery.max_retries,
        lease_seconds=settings.delivery.lease_seconds,
        send_timeout=settings.delivery_send_timeout,
        claim_wait_seconds=settings.delivery.claim_wait_seconds,
        claim_poll_interval=settings.delivery.claim_poll_interval,
    )

    logger.info(
        "service_container_built",
        sms_enabled=settings.sms.enabled,
        rate_limiter_enabled=rate_limiter.enabled,
        signature_verification=verifier.enabled,
    )

    return ServiceContainer(
        settings=settings,
        store=store,
        rate_limiter=rate_limiter,
        channel=channel,
        signature_verifier=verifier,
        intake=intake,
        delivery_worker=worker,
        cancellation=CancellationService(store),
        schedule_reminder=ScheduleReminderUseCase(rate_limiter, intake),
        transcribe_audio=TranscribeAudioUseCase(
            rate_limiter,
            transcriber,
            max_audio_bytes=settings.transcription.max_audio_bytes,
        ),
        pool=pool,
        http_client=http_client,
    )


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise ConfigurationError("Service container not initialized")
    return container


def get_client_identity(request: Request) -> str:
    """
    Identify the caller for rate limiting.

    First X-Forwarded-For entry, then X-Real-IP, then the socket peer.
    """
    container = getattr(request.app.state, "container", None)
    trust_proxy = container is None or container.settings.api.trust_proxy_headers

    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


# Service dependencies
def get_reminder_store(request: Request) -> IReminderStore:
    return get_container(request).store


def get_schedule_reminder_use_case(request: Request) -> ScheduleReminderUseCase:
    return get_container(request).schedule_reminder


def get_transcribe_audio_use_case(request: Request) -> TranscribeAudioUseCase:
    return get_container(request).transcribe_audio


def get_delivery_worker(request: Request) -> DeliveryWorker:
    return get_container(request).delivery_worker


def get_cancellation_service(request: Request) -> CancellationService:
    return get_container(request).cancellation


def get_signature_verifier(request: Request) -> ISignatureVerifier:
    return get_container(request).signature_verifier


def get_callback_url(request: Request) -> str | None:
    return get_container(request).settings.scheduler.callback_url
