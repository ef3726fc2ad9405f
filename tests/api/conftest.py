"""Fixtures for API tests: a fresh app wired to a temporary database."""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from smsreminder.api import dependencies as deps
from smsreminder.api.main import create_app
from smsreminder.application.use_cases import ScheduleReminderUseCase
from smsreminder.core.interfaces.delivery import EnqueueResult
from smsreminder.core.services import CancellationService, DeliveryWorker, IntakeService
from smsreminder.infrastructure.rate_limit import RedisRateLimiter
from smsreminder.infrastructure.scheduler import QStashSignatureVerifier

CALLBACK_URL = "https://reminders.example.com/api/reminders/deliver"


@pytest.fixture
def scheduler():
    scheduler = AsyncMock()
    scheduler.enqueue.return_value = EnqueueResult(success=True, job_id="msg_1")
    return scheduler


@pytest.fixture
def channel():
    return AsyncMock()


@pytest.fixture
def verifier() -> QStashSignatureVerifier:
    return QStashSignatureVerifier(None, None)


@pytest.fixture
def app(store, scheduler, channel, verifier, fake_redis) -> FastAPI:
    app = create_app()
    limiter = RedisRateLimiter(fake_redis, max_requests=10, window_seconds=3600)
    intake = IntakeService(store, scheduler, callback_url=CALLBACK_URL)
    worker = DeliveryWorker(store, channel, claim_wait_seconds=0.2, claim_poll_interval=0.01)

    app.dependency_overrides[deps.get_reminder_store] = lambda: store
    app.dependency_overrides[deps.get_schedule_reminder_use_case] = (
        lambda: ScheduleReminderUseCase(limiter, intake)
    )
    app.dependency_overrides[deps.get_delivery_worker] = lambda: worker
    app.dependency_overrides[deps.get_cancellation_service] = lambda: CancellationService(store)
    app.dependency_overrides[deps.get_signature_verifier] = lambda: verifier
    app.dependency_overrides[deps.get_callback_url] = lambda: CALLBACK_URL
    return app


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
