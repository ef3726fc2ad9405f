"""Abstract interface for speech-to-text providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class Transcription:
    """Text recognized from an audio clip."""

    text: str
    confidence: float = 1.0
    language: str | None = None


class ITranscriber(ABC):
    """
    Abstract interface for transcription.

    Implementations: WhisperTranscriber
    """

    @abstractmethod
    async def transcribe(
        self,
        audio: bytes,
        filename: str = "audio.wav",
        content_type: str = "audio/wav",
    ) -> Transcription:
        """
        Transcribe audio bytes.

        Raises:
            TranscriptionError: provider failure
            RateLimitError: provider is throttling us
        """
        pass
