"""
Transcribe Audio Use Case.

Validates an uploaded voice note and converts it to reminder text.
"""

from collections.abc import Callable
from datetime import datetime

from smsreminder.config import get_logger
from smsreminder.core.entities.reminder import utcnow
from smsreminder.core.exceptions import RateLimitError, ValidationError
from smsreminder.core.interfaces.rate_limit import IRateLimiter, RateLimitBucket
from smsreminder.core.interfaces.transcription import ITranscriber, Transcription

logger = get_logger(__name__)


class TranscribeAudioUseCase:
    """Rate-limited speech-to-text."""

    def __init__(
        self,
        rate_limiter: IRateLimiter,
        transcriber: ITranscriber,
        max_audio_bytes: int = 10 * 1024 * 1024,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._rate_limiter = rate_limiter
        self._transcriber = transcriber
        self._max_audio_bytes = max_audio_bytes
        self._clock = clock

    async def execute(
        self,
        audio: bytes,
        identity: str,
        filename: str = "audio.wav",
        content_type: str = "audio/wav",
    ) -> Transcription:
        decision = await self._rate_limiter.allow(identity, RateLimitBucket.TRANSCRIBE)
        if not decision.allowed:
            raise RateLimitError(
                RateLimitBucket.TRANSCRIBE.value,
                decision.retry_after(self._clock()),
            )

        if not audio:
            raise ValidationError.single("audio", "No audio file provided")
        if len(audio) > self._max_audio_bytes:
            limit_mb = self._max_audio_bytes // (1024 * 1024)
            raise ValidationError.single(
                "audio", f"Audio file too large. Maximum size is {limit_mb}MB"
            )

        transcription = await self._transcriber.transcribe(audio, filename, content_type)
        logger.info(
            "audio_transcribed",
            audio_bytes=len(audio),
            transcript_len=len(transcription.text),
        )
        return transcription
