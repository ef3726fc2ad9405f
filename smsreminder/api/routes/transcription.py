"""
Speech-to-text endpoint for dictating reminder messages.
"""

from fastapi import APIRouter, Depends, File, UploadFile

from smsreminder.api.dependencies import get_client_identity, get_transcribe_audio_use_case
from smsreminder.application.dto.responses import ErrorResponse, TranscriptionResponse
from smsreminder.application.use_cases import TranscribeAudioUseCase

router = APIRouter(prefix="/api/transcriptions", tags=["transcription"])


@router.post(
    "",
    response_model=TranscriptionResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def transcribe_audio(
    audio: UploadFile = File(..., description="Recorded voice note"),
    identity: str = Depends(get_client_identity),
    use_case: TranscribeAudioUseCase = Depends(get_transcribe_audio_use_case),
) -> TranscriptionResponse:
    """Transcribe an uploaded audio clip."""
    content = await audio.read()
    transcription = await use_case.execute(
        content,
        identity,
        filename=audio.filename or "audio.wav",
        content_type=audio.content_type or "audio/wav",
    )
    return TranscriptionResponse(
        transcript=transcription.text,
        confidence=transcription.confidence,
    )
