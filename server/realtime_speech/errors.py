"""Exception hierarchy for the realtime speech gateway."""
from __future__ import annotations


class RealtimeSpeechError(Exception):
    """Base class for every failure surfaced by the gateway."""


class InputValidationError(RealtimeSpeechError, ValueError):
    """Raised for empty or malformed caller input. Never retried."""


class ConfigurationError(RealtimeSpeechError):
    """Raised when endpoint, key or deployment settings are missing."""


class RealtimeConnectionError(RealtimeSpeechError):
    """Transport-level failure while talking to the realtime provider."""


class ConnectionTimeoutError(RealtimeConnectionError):
    """The provider never confirmed the session within the handshake deadline."""


class SessionNotReadyError(RealtimeSpeechError):
    """A command was sent before the session reached the ready state."""


class ProtocolTimeoutError(RealtimeSpeechError):
    """No completion event arrived before the operation deadline."""


class SynthesisTimeoutError(ProtocolTimeoutError):
    pass


class RecognitionTimeoutError(ProtocolTimeoutError):
    pass


class MalformedAudioError(RealtimeSpeechError):
    """The provider sent an audio delta that is not valid base64."""
