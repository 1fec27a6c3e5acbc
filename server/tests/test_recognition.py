from __future__ import annotations

import asyncio
import base64

import pytest

from realtime_speech.errors import InputValidationError, RealtimeConnectionError, RecognitionTimeoutError
from realtime_speech.services.recognition import RecognitionOrchestrator

AUDIO = base64.b64encode(b"\x00\x01" * 240).decode("ascii")


def _run(coro):  # noqa: ANN001
    return asyncio.run(coro)


def _transcribed(text: str) -> dict[str, str]:
    return {
        "type": "conversation.item.input_audio_transcription.completed",
        "item_id": "item_1",
        "transcript": text,
    }


def test_recognize_returns_transcript_verbatim(session_recorder) -> None:
    recorder = session_recorder(
        replies={"input_audio_buffer.commit": [_transcribed(" My internet is down. "), _transcribed("ignored")]}
    )
    orchestrator = RecognitionOrchestrator(recorder, timeout=2.0, poll_interval=0.01)

    text = _run(orchestrator.recognize(AUDIO))

    assert text == " My internet is down. "
    transport = recorder.transport
    assert transport.sent_types == ["input_audio_buffer.append", "input_audio_buffer.commit"]
    assert base64.b64decode(transport.sent[0]["audio"]) == b"\x00\x01" * 240
    assert recorder.sessions[0].is_closed


@pytest.mark.parametrize("audio", ["", "not base64 at all!", "====", " \n\t "])
def test_invalid_audio_fails_before_any_session(session_recorder, audio) -> None:
    recorder = session_recorder()
    orchestrator = RecognitionOrchestrator(recorder)

    with pytest.raises(InputValidationError):
        _run(orchestrator.recognize(audio))
    assert recorder.sessions == []


def test_recognize_times_out_and_closes_session(session_recorder) -> None:
    # An empty transcript does not count as a result.
    recorder = session_recorder(replies={"input_audio_buffer.commit": [_transcribed("")]})
    orchestrator = RecognitionOrchestrator(recorder, timeout=0.2, poll_interval=0.02)

    async def scenario():
        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(RecognitionTimeoutError):
            await orchestrator.recognize(AUDIO)
        return loop.time() - started

    assert 0.19 <= _run(scenario()) < 0.7
    assert recorder.sessions[0].is_closed


def test_connection_timeout_propagates(session_recorder) -> None:
    recorder = session_recorder(connect_timeout=0.1, on_connect=())
    orchestrator = RecognitionOrchestrator(recorder, timeout=2.0)

    with pytest.raises(RealtimeConnectionError):
        _run(orchestrator.recognize(AUDIO))
    assert recorder.transport.closed
    assert recorder.sessions[0].is_closed


def test_recognize_accepts_line_wrapped_base64(session_recorder) -> None:
    recorder = session_recorder(replies={"input_audio_buffer.commit": [_transcribed("wrapped")]})
    orchestrator = RecognitionOrchestrator(recorder, timeout=2.0, poll_interval=0.01)
    wrapped = base64.encodebytes(b"\x00\x01" * 240).decode("ascii")
    assert "\n" in wrapped

    assert _run(orchestrator.recognize(wrapped)) == "wrapped"
    assert base64.b64decode(recorder.transport.sent[0]["audio"]) == b"\x00\x01" * 240
