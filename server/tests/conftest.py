from __future__ import annotations

import asyncio
import base64
from typing import Any, Iterable, Optional

import pytest

from realtime_speech.services.realtime_session import RealtimeSession

_CLOSED = object()

SESSION_CREATED = {"type": "session.created", "session": {"id": "sess_test"}}


def audio_delta(size: int, fill: bytes = b"\x01", event_type: str = "response.output_audio.delta") -> dict[str, Any]:
    return {"type": event_type, "delta": base64.b64encode(fill * size).decode("ascii")}


class ScriptedTransport:
    """In-memory transport that replays canned provider events.

    ``on_connect`` events are delivered right after ``connect``; ``replies`` maps a
    client command type to the events pushed when that command is sent.
    """

    def __init__(
        self,
        on_connect: Iterable[Any] = (SESSION_CREATED,),
        replies: Optional[dict[str, list[Any]]] = None,
        connect_error: Optional[BaseException] = None,
    ) -> None:
        self._on_connect = list(on_connect)
        self._replies = replies or {}
        self._connect_error = connect_error
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.connected = False
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    @property
    def sent_types(self) -> list[str]:
        return [event["type"] for event in self.sent]

    def push(self, item: Any) -> None:
        self._inbox.put_nowait(item)

    async def connect(self) -> None:
        if self._connect_error is not None:
            raise self._connect_error
        self.connected = True
        for item in self._on_connect:
            self.push(item)

    async def send(self, event: dict[str, Any]) -> None:
        self.sent.append(event)
        for item in self._replies.get(event["type"], []):
            self.push(item)

    async def events(self):
        while True:
            item = await self._inbox.get()
            if item is _CLOSED:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def close(self) -> None:
        self.close_calls += 1
        self.push(_CLOSED)


class SessionRecorder:
    """Session factory that remembers every session and transport it handed out."""

    def __init__(self, connect_timeout: float = 1.0, **transport_kwargs: Any) -> None:
        self.connect_timeout = connect_timeout
        self.transport_kwargs = transport_kwargs
        self.sessions: list[RealtimeSession] = []
        self.transports: list[ScriptedTransport] = []

    def __call__(self) -> RealtimeSession:
        transport = ScriptedTransport(**self.transport_kwargs)
        session = RealtimeSession(transport, connect_timeout=self.connect_timeout)
        self.transports.append(transport)
        self.sessions.append(session)
        return session

    @property
    def transport(self) -> ScriptedTransport:
        assert len(self.transports) == 1
        return self.transports[0]


@pytest.fixture
def scripted_transport():
    return ScriptedTransport


@pytest.fixture
def session_recorder():
    return SessionRecorder


@pytest.fixture
def delta():
    return audio_delta


@pytest.fixture
def session_created() -> dict[str, Any]:
    return dict(SESSION_CREATED)
