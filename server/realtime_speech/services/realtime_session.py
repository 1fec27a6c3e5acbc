"""Realtime API session client.

A :class:`RealtimeSession` owns one WebSocket conversation with the Azure OpenAI
realtime endpoint for the lifetime of a single request. It hides which of the
two connection styles is in use:

* GA deployments (``gpt-realtime``, ``gpt-realtime-mini``) are reached through a
  hand-built ``wss://<endpoint>/v1/realtime?model=<deployment>`` URL with
  ``api-key`` header auth (:class:`WebSocketTransport`).
* Preview deployments go through the ``openai`` SDK's Azure realtime handshake
  (:class:`OpenAISDKTransport`).

Inbound provider messages are parsed on a single reader task and fanned out to
handlers registered per :class:`EventKind`, so handlers of one session never
run concurrently.
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol

from openai import AsyncAzureOpenAI
from typing_extensions import assert_never
from websockets.asyncio.client import ClientConnection
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosedOK

from ..config import ProtocolFamily, RealtimeConfig, Settings
from ..errors import (
    ConnectionTimeoutError,
    RealtimeConnectionError,
    RealtimeSpeechError,
    SessionNotReadyError,
)

logger = logging.getLogger(__name__)

RealtimeEvent = dict[str, Any]
EventHandler = Callable[[RealtimeEvent], Optional[Awaitable[None]]]


class EventKind(str, Enum):
    """Provider events the gateway reacts to."""

    SESSION_CREATED = "session.created"
    SESSION_UPDATED = "session.updated"
    AUDIO_DELTA = "response.output_audio.delta"
    RESPONSE_DONE = "response.done"
    TRANSCRIPTION_COMPLETED = "conversation.item.input_audio_transcription.completed"
    ERROR = "error"
    # Any event type not listed above.
    OTHER = "other"
    # Wildcard: receives every inbound event after its specific handlers.
    ANY = "*"

    @classmethod
    def from_wire(cls, event_type: Optional[str]) -> "EventKind":
        if not isinstance(event_type, str):
            return cls.OTHER
        if event_type in _WIRE_ALIASES:
            return _WIRE_ALIASES[event_type]
        try:
            kind = cls(event_type)
        except ValueError:
            return cls.OTHER
        if kind in (cls.OTHER, cls.ANY):
            return cls.OTHER
        return kind


# Preview deployments still emit the beta event names.
_WIRE_ALIASES = {
    "response.audio.delta": EventKind.AUDIO_DELTA,
}


class SessionState(str, Enum):
    NEW = "new"
    CONNECTING = "connecting"
    AWAITING_READY = "awaiting_ready"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"
    ERROR = "error"


class RealtimeTransport(Protocol):
    """Minimal duplex channel a session drives."""

    async def connect(self) -> None: ...

    async def send(self, event: RealtimeEvent) -> None: ...

    def events(self) -> AsyncIterator[RealtimeEvent]: ...

    async def close(self) -> None: ...


def _parse_message(message: Any) -> Optional[RealtimeEvent]:
    try:
        event = json.loads(message)
    except (TypeError, ValueError):
        logger.warning("Failed to parse realtime message: %.200r", message)
        return None
    if not isinstance(event, dict):
        logger.warning("Ignoring non-object realtime message: %.200r", message)
        return None
    return event


def _websocket_base(endpoint: str) -> str:
    base = endpoint.rstrip("/")
    if base.startswith("https://"):
        return "wss://" + base[len("https://"):]
    if base.startswith("http://"):
        return "ws://" + base[len("http://"):]
    return base


class WebSocketTransport:
    """Raw WebSocket connection for GA realtime deployments."""

    def __init__(self, config: RealtimeConfig) -> None:
        base_url = _websocket_base(config.endpoint)
        self.url = f"{base_url}/v1/realtime?model={config.deployment}"
        self._headers = {
            "api-key": config.api_key,
            "OpenAI-Beta": "realtime=v1",
        }
        self._connection: Optional[ClientConnection] = None

    async def connect(self) -> None:
        logger.info("Opening realtime WebSocket: %s", self.url)
        self._connection = await ws_connect(self.url, additional_headers=self._headers)

    async def send(self, event: RealtimeEvent) -> None:
        if self._connection is None:
            raise RealtimeConnectionError("WebSocket is not connected")
        await self._connection.send(json.dumps(event))

    async def events(self) -> AsyncIterator[RealtimeEvent]:
        if self._connection is None:
            return
        async for message in self._connection:
            event = _parse_message(message)
            if event is not None:
                yield event

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None


class OpenAISDKTransport:
    """Realtime connection negotiated by the ``openai`` SDK for preview deployments."""

    def __init__(self, config: RealtimeConfig) -> None:
        self._config = config
        self._client: Optional[AsyncAzureOpenAI] = None
        self._connection: Any = None

    def _build_client(self) -> AsyncAzureOpenAI:
        # The endpoint already carries the `/openai` segment, so it is the base URL as-is.
        return AsyncAzureOpenAI(
            api_key=self._config.api_key,
            base_url=self._config.endpoint,
            api_version=self._config.api_version,
        )

    async def connect(self) -> None:
        self._client = self._build_client()
        logger.info(
            "Opening realtime SDK connection: deployment=%s api_version=%s",
            self._config.deployment,
            self._config.api_version,
        )
        self._connection = await self._client.realtime.connect(model=self._config.deployment).enter()

    async def send(self, event: RealtimeEvent) -> None:
        if self._connection is None:
            raise RealtimeConnectionError("Realtime SDK connection is not open")
        await self._connection.send(event)

    async def events(self) -> AsyncIterator[RealtimeEvent]:
        if self._connection is None:
            return
        while True:
            try:
                message = await self._connection.recv_bytes()
            except ConnectionClosedOK:
                return
            event = _parse_message(message)
            if event is not None:
                yield event

    async def close(self) -> None:
        connection, self._connection = self._connection, None
        client, self._client = self._client, None
        try:
            if connection is not None:
                await connection.close()
        finally:
            if client is not None:
                await client.close()


def build_transport(config: RealtimeConfig) -> RealtimeTransport:
    """Select the transport variant for the configured protocol family."""
    if config.protocol == ProtocolFamily.GA:
        return WebSocketTransport(config)
    if config.protocol == ProtocolFamily.PREVIEW:
        return OpenAISDKTransport(config)
    assert_never(config.protocol)


class RealtimeSession:
    """One request-scoped realtime conversation.

    Use as ``async with factory() as session:`` so the transport is released on
    every exit path; :meth:`open` already closes it when bring-up fails.
    """

    def __init__(self, transport: RealtimeTransport, *, connect_timeout: float = 10.0) -> None:
        self._transport = transport
        self._connect_timeout = connect_timeout
        self._handlers: dict[EventKind, list[EventHandler]] = {}
        self._state = SessionState.NEW
        self._ready = asyncio.Event()
        self._reader: Optional[asyncio.Task[None]] = None
        self._failure: Optional[BaseException] = None
        self.session_id: Optional[str] = None

    async def __aenter__(self) -> "RealtimeSession":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def is_closed(self) -> bool:
        return self._state is SessionState.CLOSED

    def on(self, kind: EventKind, handler: EventHandler) -> None:
        """Register ``handler`` for ``kind``; handlers run in registration order."""
        if self._state in (SessionState.CLOSING, SessionState.CLOSED):
            raise RealtimeConnectionError("Cannot register handlers on a closed session")
        self._handlers.setdefault(kind, []).append(handler)

    async def open(self) -> "RealtimeSession":
        if self._state is not SessionState.NEW:
            raise RealtimeConnectionError(f"Session cannot be opened from state {self._state.value}")

        self._set_state(SessionState.CONNECTING)
        self.on(EventKind.SESSION_CREATED, self._on_session_created)
        self.on(EventKind.ERROR, self._on_provider_error)
        try:
            await asyncio.wait_for(self._handshake(), timeout=self._connect_timeout)
        except asyncio.TimeoutError as exc:
            await self.close()
            raise ConnectionTimeoutError(
                "WebSocket connection timeout - did not receive session.created"
            ) from exc
        except RealtimeSpeechError:
            await self.close()
            raise
        except Exception as exc:
            await self.close()
            raise RealtimeConnectionError(f"Failed to connect to realtime endpoint: {exc}") from exc
        except asyncio.CancelledError:
            await self.close()
            raise

        if self._failure is None:
            self._set_state(SessionState.READY)
        logger.info("Realtime session ready (id=%s)", self.session_id)
        return self

    async def send(self, event: RealtimeEvent) -> None:
        """Serialize one client command to the provider."""
        self.raise_if_failed()
        event_type = event.get("type")
        if self._state is not SessionState.READY:
            raise SessionNotReadyError(
                f"Cannot send {event_type!r} while session is {self._state.value}"
            )
        logger.debug("Sending realtime event: %s", event_type)
        try:
            await self._transport.send(event)
        except Exception as exc:
            raise RealtimeConnectionError(f"Failed to send {event_type!r}: {exc}") from exc

    def raise_if_failed(self) -> None:
        """Surface a fatal transport error observed by the reader task."""
        if self._failure is not None:
            raise RealtimeConnectionError(f"Realtime connection lost: {self._failure}") from self._failure

    async def wait_for(self, flag: asyncio.Event, timeout: float) -> bool:
        """Wait until ``flag`` is set, the transport fails, or ``timeout`` elapses."""
        waiter = asyncio.ensure_future(flag.wait())
        watched: set[asyncio.Future[Any]] = {waiter}
        if self._reader is not None:
            watched.add(self._reader)
        try:
            await asyncio.wait(watched, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not waiter.done():
                waiter.cancel()
        if flag.is_set():
            return True
        self.raise_if_failed()
        return False

    async def close(self) -> None:
        """Release the transport; safe to call any number of times."""
        if self._state in (SessionState.CLOSING, SessionState.CLOSED):
            return
        self._set_state(SessionState.CLOSING)

        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)

        try:
            await self._transport.close()
        except Exception as exc:
            logger.warning("Error while closing realtime transport: %s", exc)
        finally:
            self._handlers.clear()
            self._set_state(SessionState.CLOSED)

    async def _handshake(self) -> None:
        await self._transport.connect()
        self._set_state(SessionState.AWAITING_READY)
        logger.info("Realtime transport connected, waiting for session.created...")

        self._reader = asyncio.create_task(self._read_loop())
        waiter = asyncio.ensure_future(self._ready.wait())
        try:
            await asyncio.wait({waiter, self._reader}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not waiter.done():
                waiter.cancel()

        if not self._ready.is_set():
            raise RealtimeConnectionError(
                f"Realtime connection ended before session.created: {self._failure}"
            ) from self._failure

    async def _read_loop(self) -> None:
        try:
            async for event in self._transport.events():
                await self._dispatch(event)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._state in (SessionState.CLOSING, SessionState.CLOSED):
                return
            logger.error("Realtime transport failed: %s", exc)
            self._failure = exc
            self._set_state(SessionState.ERROR)
            return

        if self._state not in (SessionState.CLOSING, SessionState.CLOSED):
            logger.info("Realtime connection closed by provider")
            self._failure = ConnectionError("connection closed by provider")
            self._set_state(SessionState.ERROR)

    async def _dispatch(self, event: RealtimeEvent) -> None:
        event_type = event.get("type")
        kind = EventKind.from_wire(event_type)
        logger.debug("Realtime event: %s", event_type)

        handlers = [*self._handlers.get(kind, ()), *self._handlers.get(EventKind.ANY, ())]
        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Realtime handler for %s failed", event_type)

    def _on_session_created(self, event: RealtimeEvent) -> None:
        session = event.get("session") or {}
        self.session_id = session.get("id") if isinstance(session, dict) else None
        logger.info("Realtime session created successfully")
        self._ready.set()

    def _on_provider_error(self, event: RealtimeEvent) -> None:
        error = event.get("error") or {}
        message = error.get("message") if isinstance(error, dict) else error
        logger.warning("Realtime error event (may be non-fatal): %s", message)

    def _set_state(self, new_state: SessionState) -> None:
        old_state = self._state
        self._state = new_state
        if old_state is not new_state:
            logger.debug("Realtime session state: %s -> %s", old_state.value, new_state.value)


async def poll_until(
    session: RealtimeSession,
    predicate: Callable[[], bool],
    *,
    timeout: float,
    interval: float = 0.1,
) -> bool:
    """Cooperatively poll ``predicate`` until it holds or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        session.raise_if_failed()
        remaining = deadline - loop.time()
        if remaining <= 0:
            return False
        await asyncio.sleep(min(interval, remaining))
    return True


def realtime_session_factory(settings: Settings) -> Callable[[], RealtimeSession]:
    """Build a per-request session factory bound to ``settings``.

    Configuration is validated when the factory is called, before any
    connection attempt.
    """

    def factory() -> RealtimeSession:
        config = settings.realtime_config()
        logger.info(
            "Creating realtime session: endpoint=%s deployment=%s protocol=%s",
            config.endpoint,
            config.deployment,
            config.protocol.value,
        )
        return RealtimeSession(build_transport(config), connect_timeout=settings.connect_timeout_s)

    return factory
