"""Unit tests for ScheduleReminderUseCase and TranscribeAudioUseCase."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from smsreminder.application.dto.requests import ScheduleReminderRequest
from smsreminder.application.use_cases import ScheduleReminderUseCase, TranscribeAudioUseCase
from smsreminder.core.exceptions import RateLimitError, ValidationError
from smsreminder.core.interfaces.rate_limit import RateLimitBucket, RateLimitDecision
from smsreminder.core.interfaces.transcription import Transcription
from smsreminder.core.services.intake import IntakeResult


def _decision(clock, allowed: bool, reset_in: int = 600) -> RateLimitDecision:
    return RateLimitDecision(
        allowed=allowed,
        remaining=5 if allowed else 0,
        reset_at=clock.now + timedelta(seconds=reset_in),
    )


class TestScheduleReminderUseCase:
    """Rate limiting in front of intake."""

    async def test_passes_request_to_intake(self, clock):
        limiter = AsyncMock()
        limiter.allow.return_value = _decision(clock, allowed=True)
        intake = AsyncMock()
        intake.submit.return_value = IntakeResult("r1", clock.now + timedelta(hours=1))
        use_case = ScheduleReminderUseCase(limiter, intake, clock=clock)

        request = ScheduleReminderRequest.model_validate(
            {
                "recipient": "+14155550123",
                "message": "Stretch",
                "fireAt": "2026-03-01T13:00:00Z",
                "timezone": "UTC",
                "consent": True,
            }
        )
        result = await use_case.execute(request, "203.0.113.7")

        assert result.reminder_id == "r1"
        limiter.allow.assert_awaited_once_with("203.0.113.7", RateLimitBucket.SCHEDULE)
        intake.submit.assert_awaited_once_with(
            recipient="+14155550123",
            body="Stretch",
            fire_at="2026-03-01T13:00:00Z",
            timezone="UTC",
            consent=True,
        )

    async def test_rejected_before_intake(self, clock):
        limiter = AsyncMock()
        limiter.allow.return_value = _decision(clock, allowed=False, reset_in=120)
        intake = AsyncMock()
        use_case = ScheduleReminderUseCase(limiter, intake, clock=clock)

        with pytest.raises(RateLimitError) as exc_info:
            await use_case.execute(ScheduleReminderRequest(), "203.0.113.7")

        assert exc_info.value.retry_after == 120
        intake.submit.assert_not_awaited()


class TestTranscribeAudioUseCase:
    """Audio checks and transcription."""

    def _use_case(self, clock, allowed: bool = True, max_audio_bytes: int = 1024):
        limiter = AsyncMock()
        limiter.allow.return_value = _decision(clock, allowed=allowed)
        transcriber = AsyncMock()
        transcriber.transcribe.return_value = Transcription(text="buy milk")
        use_case = TranscribeAudioUseCase(
            limiter, transcriber, max_audio_bytes=max_audio_bytes, clock=clock
        )
        return use_case, limiter, transcriber

    async def test_transcribes(self, clock):
        use_case, limiter, transcriber = self._use_case(clock)

        result = await use_case.execute(b"RIFF....", "198.51.100.1", "note.webm", "audio/webm")

        assert result.text == "buy milk"
        limiter.allow.assert_awaited_once_with("198.51.100.1", RateLimitBucket.TRANSCRIBE)
        transcriber.transcribe.assert_awaited_once_with(b"RIFF....", "note.webm", "audio/webm")

    async def test_empty_audio(self, clock):
        use_case, _, transcriber = self._use_case(clock)
        with pytest.raises(ValidationError) as exc_info:
            await use_case.execute(b"", "198.51.100.1")
        assert set(exc_info.value.errors) == {"audio"}
        transcriber.transcribe.assert_not_awaited()

    async def test_oversized_audio(self, clock):
        use_case, _, transcriber = self._use_case(clock, max_audio_bytes=4)
        with pytest.raises(ValidationError):
            await use_case.execute(b"12345", "198.51.100.1")
        transcriber.transcribe.assert_not_awaited()

    async def test_rate_limited(self, clock):
        use_case, _, transcriber = self._use_case(clock, allowed=False)
        with pytest.raises(RateLimitError):
            await use_case.execute(b"1234", "198.51.100.1")
        transcriber.transcribe.assert_not_awaited()
