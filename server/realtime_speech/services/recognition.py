"""Speech-to-text over the realtime API."""
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..errors import InputValidationError, RealtimeSpeechError, RecognitionTimeoutError
from .realtime_session import EventKind, RealtimeEvent, RealtimeSession, poll_until

logger = logging.getLogger(__name__)


@dataclass
class RecognitionJob:
    audio: bytes
    transcript: str = ""

    def record(self, transcript: Optional[str]) -> None:
        if self.transcript or not transcript:
            return
        self.transcript = transcript


def _decode_audio(audio_base64: str) -> bytes:
    if not audio_base64:
        raise InputValidationError("No audio data provided")
    try:
        # MIME-wrapped payloads carry line breaks; strip whitespace before strict decoding.
        audio = base64.b64decode("".join(audio_base64.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InputValidationError(f"Audio data is not valid base64: {exc}") from exc
    if not audio:
        raise InputValidationError("No audio data provided")
    return audio


class RecognitionOrchestrator:
    """Sends one buffered utterance and waits for its transcription."""

    def __init__(
        self,
        session_factory: Callable[[], RealtimeSession],
        *,
        timeout: float = 10.0,
        poll_interval: float = 0.1,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout
        self._poll_interval = poll_interval

    async def recognize(self, audio_base64: str) -> str:
        """Transcribe base64 PCM16 (24kHz mono) audio; the transcript is returned verbatim."""
        job = RecognitionJob(audio=_decode_audio(audio_base64))
        loop = asyncio.get_running_loop()
        started = loop.time()

        def on_transcript(event: RealtimeEvent) -> None:
            job.record(event.get("transcript"))
            logger.info("[Realtime STT] Transcription completed: %r", job.transcript)

        try:
            async with self._session_factory() as session:
                logger.info("[Realtime STT] WebSocket connection established")
                session.on(EventKind.TRANSCRIPTION_COMPLETED, on_transcript)

                await session.send(
                    {
                        "type": "input_audio_buffer.append",
                        "audio": base64.b64encode(job.audio).decode("ascii"),
                    }
                )
                await session.send({"type": "input_audio_buffer.commit"})

                recognized = await poll_until(
                    session, lambda: bool(job.transcript), timeout=self._timeout, interval=self._poll_interval
                )
                if not recognized:
                    raise RecognitionTimeoutError("Transcription timeout - no response received")
        except RealtimeSpeechError as exc:
            logger.error(
                "[Realtime STT] Failed after %.0fms: %s", (loop.time() - started) * 1000, exc
            )
            raise

        logger.info("[Realtime STT] Completed in %.0fms", (loop.time() - started) * 1000)
        return job.transcript
