"""Speech endpoints backed by the Azure OpenAI realtime API."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse, StreamingResponse

from ..config import ProtocolFamily, get_settings
from ..models import schemas
from ..services.realtime_session import realtime_session_factory
from ..services.recognition import RecognitionOrchestrator
from ..services.stats import stats_sink
from ..services.synthesis import SynthesisOrchestrator
from ..services.voices import DEFAULT_VOICE, VOICE_CATALOGUE, VOICE_MAP, resolve_voice

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/speech-realtime", tags=["speech-realtime"])


def get_synthesis_orchestrator() -> SynthesisOrchestrator:
    settings = get_settings()
    return SynthesisOrchestrator(
        realtime_session_factory(settings),
        stats=stats_sink,
        timeout=settings.synthesis_timeout_s,
        poll_interval=settings.poll_interval_s,
        configure_voice=settings.configure_voice,
    )


def get_recognition_orchestrator() -> RecognitionOrchestrator:
    settings = get_settings()
    return RecognitionOrchestrator(
        realtime_session_factory(settings),
        timeout=settings.recognition_timeout_s,
        poll_interval=settings.poll_interval_s,
    )


def _error_response(error: str, exc: Exception) -> JSONResponse:
    body = schemas.ErrorResponse(error=error, details=str(exc) or "Unknown error", type=type(exc).__name__)
    return JSONResponse(status_code=500, content=body.model_dump())


@router.post("/recognize", response_model=schemas.RecognizeResponse)
async def recognize(
    payload: schemas.RecognizeRequest,
    orchestrator: RecognitionOrchestrator = Depends(get_recognition_orchestrator),
) -> Any:
    """Speech recognition through the realtime API's input audio transcription."""

    logger.info("[Realtime] Speech recognition request received, audioData length: %d", len(payload.audio_data))
    try:
        text = await orchestrator.recognize(payload.audio_data)
    except Exception as exc:
        logger.exception("[Realtime] Speech recognition failed")
        return _error_response("Speech recognition failed (Realtime API)", exc)
    return schemas.RecognizeResponse(text=text)


@router.post("/synthesize")
async def synthesize(
    payload: schemas.SynthesizeRequest,
    orchestrator: SynthesisOrchestrator = Depends(get_synthesis_orchestrator),
) -> Response:
    """Text-to-speech returning a 24kHz mono 16-bit WAV file."""

    voice = resolve_voice(payload.voice_name, payload.voice_gender)
    logger.info(
        "[Realtime] TTS request: text=%r voiceName=%s voiceGender=%s -> %s",
        payload.text[:50],
        payload.voice_name,
        payload.voice_gender,
        voice,
    )
    try:
        audio = await orchestrator.synthesize(payload.text, voice)
    except Exception as exc:
        logger.exception("[Realtime] Speech synthesis failed")
        return _error_response("Speech synthesis failed (Realtime API)", exc)
    return Response(content=audio, media_type="audio/wav")


async def _open_pcm_stream(
    orchestrator: SynthesisOrchestrator, text: str, voice: str
) -> AsyncIterator[bytes]:
    """Start synthesis and wait for the first chunk.

    Failures before any audio is produced are raised here so the caller can still
    answer with a JSON error; later failures just end the stream.
    """
    queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue()
    task = asyncio.create_task(orchestrator.synthesize_streaming(text, voice, queue.put_nowait))
    task.add_done_callback(lambda _: queue.put_nowait(None))

    try:
        first = await queue.get()
    except asyncio.CancelledError:
        task.cancel()
        raise
    if first is None:
        task.result()

    async def body() -> AsyncIterator[bytes]:
        chunk = first
        try:
            while chunk is not None:
                yield chunk
                chunk = await queue.get()
            if not task.cancelled() and task.exception() is not None:
                logger.error("[Realtime] Speech synthesis stream ended early: %s", task.exception())
        finally:
            if not task.done():
                task.cancel()

    return body()


@router.post("/synthesize/stream")
async def synthesize_stream(
    payload: schemas.SynthesizeRequest,
    orchestrator: SynthesisOrchestrator = Depends(get_synthesis_orchestrator),
) -> Response:
    """Streaming text-to-speech: raw PCM chunks are forwarded as they are generated."""

    voice = resolve_voice(payload.voice_name, payload.voice_gender)
    logger.info("[Realtime] TTS stream request: text=%r voice=%s", payload.text[:50], voice)
    try:
        stream = await _open_pcm_stream(orchestrator, payload.text, voice)
    except Exception as exc:
        logger.exception("[Realtime] Speech synthesis streaming failed")
        return _error_response("Speech synthesis streaming failed (Realtime API)", exc)
    return StreamingResponse(stream, media_type="audio/pcm")


@router.get("/info")
async def info() -> dict[str, Any]:
    """Static description of the realtime speech capabilities and voice mapping."""

    settings = get_settings()
    deployment = settings.azure_openai_realtime_deployment
    return {
        "implementation": "Azure OpenAI Realtime API",
        "protocol": "WebSocket",
        "models": {
            "stt": "whisper-1",
            "tts": deployment or "gpt-4o-realtime",
        },
        "protocolFamily": ProtocolFamily.for_deployment(deployment or "").value,
        "voices": list(VOICE_CATALOGUE),
        "defaultVoice": DEFAULT_VOICE,
        "voiceMapping": dict(VOICE_MAP),
        "audioFormat": {
            "input": "PCM 24kHz 16-bit",
            "output": "PCM 24kHz 16-bit",
        },
        "features": [
            "Low latency",
            "Integrated conversational AI",
            "Server-side VAD",
            "WebSocket streaming",
        ],
        "limitations": [
            "Limited voice options (6 voices)",
            "No SSML support",
            "PCM format only",
        ],
    }
