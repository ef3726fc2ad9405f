"""API route modules."""

from smsreminder.api.routes.delivery import router as delivery_router
from smsreminder.api.routes.health import router as health_router
from smsreminder.api.routes.reminders import router as reminders_router
from smsreminder.api.routes.transcription import router as transcription_router

__all__ = [
    "health_router",
    "delivery_router",
    "reminders_router",
    "transcription_router",
]
