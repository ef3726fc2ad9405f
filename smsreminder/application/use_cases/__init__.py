"""Application use cases."""

from smsreminder.application.use_cases.schedule_reminder import ScheduleReminderUseCase
from smsreminder.application.use_cases.transcribe_audio import TranscribeAudioUseCase

__all__ = [
    "ScheduleReminderUseCase",
    "TranscribeAudioUseCase",
]
