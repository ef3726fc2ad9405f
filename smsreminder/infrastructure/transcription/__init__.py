"""Speech-to-text implementations."""

from smsreminder.infrastructure.transcription.whisper import WhisperTranscriber

__all__ = ["WhisperTranscriber"]
