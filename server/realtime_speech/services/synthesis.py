"""Text-to-speech over the realtime API."""
from __future__ import annotations

import asyncio
import base64
import binascii
import inspect
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from ..errors import (
    InputValidationError,
    MalformedAudioError,
    RealtimeSpeechError,
    SynthesisTimeoutError,
)
from .realtime_session import EventKind, RealtimeEvent, RealtimeSession, poll_until
from .stats import StatsSink
from .voices import DEFAULT_VOICE
from .wav import frame_pcm16

logger = logging.getLogger(__name__)

AudioSink = Callable[[bytes], Optional[Awaitable[None]]]


@dataclass
class SynthesisJob:
    """Audio collected for one synthesis call."""

    text: str
    voice: str
    chunks: list[bytes] = field(default_factory=list)
    completed: bool = False
    streamed_bytes: int = 0
    failure: Optional[MalformedAudioError] = None

    def append(self, chunk: bytes) -> None:
        # Chunks are final once the response is done.
        if self.completed:
            logger.warning("Dropping %d bytes of audio received after response.done", len(chunk))
            return
        self.chunks.append(chunk)

    def complete(self) -> None:
        self.completed = True

    def fail(self, error: MalformedAudioError) -> None:
        if self.failure is None:
            self.failure = error

    @property
    def finished(self) -> bool:
        return self.completed or self.failure is not None

    def raise_if_failed(self) -> None:
        if self.failure is not None:
            raise self.failure

    @property
    def pcm(self) -> bytes:
        return b"".join(self.chunks)


def _decode_delta(event: RealtimeEvent) -> bytes:
    try:
        return base64.b64decode(event.get("delta") or "", validate=True)
    except (binascii.Error, TypeError, ValueError) as exc:
        raise MalformedAudioError(f"Undecodable audio delta: {exc}") from exc


def _user_text_item(text: str) -> RealtimeEvent:
    return {
        "type": "conversation.item.create",
        "item": {
            "type": "message",
            "role": "user",
            "content": [{"type": "input_text", "text": text}],
        },
    }


class SynthesisOrchestrator:
    """Drives one ``conversation.item.create`` / ``response.create`` cycle per call."""

    def __init__(
        self,
        session_factory: Callable[[], RealtimeSession],
        *,
        stats: Optional[StatsSink] = None,
        timeout: float = 30.0,
        poll_interval: float = 0.1,
        configure_voice: bool = False,
    ) -> None:
        self._session_factory = session_factory
        self._stats = stats
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._configure_voice = configure_voice

    async def synthesize(self, text: str, voice: str = DEFAULT_VOICE) -> bytes:
        """Return WAV-framed 24kHz mono PCM16 audio for ``text``."""
        job = self._start_job(text, voice)
        loop = asyncio.get_running_loop()
        started = loop.time()
        logger.info("[Realtime TTS] Synthesizing text (%d chars) with voice: %s", len(text), voice)

        def on_audio(event: RealtimeEvent) -> None:
            try:
                chunk = _decode_delta(event)
            except MalformedAudioError as exc:
                logger.error("[Realtime TTS] %s", exc)
                job.fail(exc)
                return
            job.append(chunk)
            logger.debug("[Realtime TTS] Received audio chunk: %d bytes", len(chunk))

        def on_done(event: RealtimeEvent) -> None:
            job.complete()
            logger.info("[Realtime TTS] Response complete")

        try:
            async with self._session_factory() as session:
                session.on(EventKind.AUDIO_DELTA, on_audio)
                session.on(EventKind.RESPONSE_DONE, on_done)
                session.on(EventKind.ANY, self._log_event)
                await self._request_speech(session, job)

                completed = await poll_until(
                    session, lambda: job.finished, timeout=self._timeout, interval=self._poll_interval
                )
                job.raise_if_failed()
                if not completed:
                    raise SynthesisTimeoutError("Synthesis timeout - no response received")
        except RealtimeSpeechError as exc:
            logger.error(
                "[Realtime TTS] Synthesis failed after %.0fms: %s", (loop.time() - started) * 1000, exc
            )
            raise

        pcm = job.pcm
        audio = frame_pcm16(pcm)
        logger.info(
            "[Realtime TTS] Synthesis completed in %.0fms, PCM size: %d bytes, WAV size: %d bytes",
            (loop.time() - started) * 1000,
            len(pcm),
            len(audio),
        )
        return audio

    async def synthesize_streaming(self, text: str, voice: str, sink: AudioSink) -> None:
        """Hand raw PCM chunks to ``sink`` as they arrive; returns once the response is done."""
        job = self._start_job(text, voice)
        loop = asyncio.get_running_loop()
        started = loop.time()
        done = asyncio.Event()
        logger.info("[Realtime TTS Stream] Synthesizing text (%d chars) with voice: %s", len(text), voice)

        async def on_audio(event: RealtimeEvent) -> None:
            if job.finished:
                return
            try:
                chunk = _decode_delta(event)
            except MalformedAudioError as exc:
                logger.error("[Realtime TTS Stream] %s", exc)
                job.fail(exc)
                done.set()
                return
            job.streamed_bytes += len(chunk)
            result = sink(chunk)
            if inspect.isawaitable(result):
                await result

        def on_done(event: RealtimeEvent) -> None:
            job.complete()
            done.set()

        try:
            async with self._session_factory() as session:
                session.on(EventKind.AUDIO_DELTA, on_audio)
                session.on(EventKind.RESPONSE_DONE, on_done)
                session.on(EventKind.ANY, self._log_event)
                await self._request_speech(session, job, audio_only=True)

                if not await session.wait_for(done, self._timeout):
                    raise SynthesisTimeoutError("Synthesis timeout - no response received")
                job.raise_if_failed()
        except RealtimeSpeechError as exc:
            logger.error(
                "[Realtime TTS Stream] Failed after %.0fms: %s", (loop.time() - started) * 1000, exc
            )
            raise

        logger.info(
            "[Realtime TTS Stream] Completed in %.0fms, streamed %d bytes",
            (loop.time() - started) * 1000,
            job.streamed_bytes,
        )

    def _start_job(self, text: str, voice: str) -> SynthesisJob:
        if not text:
            raise InputValidationError("No text provided for synthesis")
        if self._stats is not None:
            self._stats.record_audio_chars(len(text))
        return SynthesisJob(text=text, voice=voice or DEFAULT_VOICE)

    async def _request_speech(
        self, session: RealtimeSession, job: SynthesisJob, *, audio_only: bool = False
    ) -> None:
        if self._configure_voice:
            # Best effort: some deployments reject session.update and keep their defaults.
            await session.send({"type": "session.update", "session": {"voice": job.voice}})
        else:
            logger.debug("Skipping session.update; deployment default voice will be used")

        await session.send(_user_text_item(job.text))
        response: RealtimeEvent = {"type": "response.create"}
        if audio_only:
            response["response"] = {
                "modalities": ["audio"],
                "instructions": "Please respond with speech.",
            }
        await session.send(response)

    @staticmethod
    def _log_event(event: RealtimeEvent) -> None:
        logger.debug("[Realtime TTS] Event: %s", event.get("type"))
