"""
Whisper speech-to-text provider.

Uses the OpenAI-compatible /audio/transcriptions endpoint over httpx.
"""

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from smsreminder.config import get_logger
from smsreminder.config.settings import TranscriptionSettings
from smsreminder.core.exceptions import RateLimitError, TranscriptionError
from smsreminder.core.interfaces.transcription import ITranscriber, Transcription

logger = get_logger(__name__)


class WhisperTranscriber(ITranscriber):
    """OpenAI Whisper HTTP API provider."""

    def __init__(
        self,
        api_key: str | None,
        api_base: str = "https://api.openai.com/v1",
        model: str = "whisper-1",
        language: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.model = model
        self.language = language
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: TranscriptionSettings,
        client: httpx.AsyncClient | None = None,
    ) -> "WhisperTranscriber":
        return cls(
            api_key=settings.api_key,
            api_base=settings.api_base,
            model=settings.model,
            language=settings.language,
            timeout=settings.timeout,
            client=client,
        )

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "audio.wav",
        content_type: str = "audio/wav",
    ) -> Transcription:
        """Transcribe an audio clip."""
        if not self.api_key:
            raise TranscriptionError("Speech recognition service not configured", unavailable=True)

        data = {"model": self.model}
        if self.language:
            data["language"] = self.language

        start_time = time.time()
        try:
            async with self._http() as client:
                response = await client.post(
                    f"{self.api_base}/audio/transcriptions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    data=data,
                    files={"file": (filename, audio, content_type)},
                    timeout=self.timeout,
                )
        except httpx.TimeoutException as e:
            raise TranscriptionError(f"timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise TranscriptionError(f"provider unreachable: {e}") from e

        if response.status_code == 401:
            raise TranscriptionError("Speech recognition service not configured", unavailable=True)
        if response.status_code == 429:
            retry_after = int(float(response.headers.get("retry-after") or 30))
            raise RateLimitError("transcription provider", retry_after)
        if response.status_code != 200:
            raise TranscriptionError(f"HTTP {response.status_code}: {response.text[:200]}")

        text = (response.json().get("text") or "").strip()
        logger.info(
            "transcription_complete",
            model=self.model,
            audio_bytes=len(audio),
            text_len=len(text),
            elapsed_ms=int((time.time() - start_time) * 1000),
        )
        return Transcription(text=text, confidence=1.0, language=self.language)
