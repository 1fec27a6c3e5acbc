"""Pydantic models describing request and response payloads."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SynthesizeRequest(BaseModel):
    """Text-to-speech request; voice name wins over gender when both resolve."""

    model_config = ConfigDict(populate_by_name=True)

    # Empty text is rejected by the orchestrator so callers get the usual 500 body.
    text: str = Field(default="", description="Text to speak")
    voice_name: Optional[str] = Field(
        default=None, alias="voiceName", description="Azure neural voice name or realtime voice token"
    )
    voice_gender: Optional[str] = Field(
        default=None, alias="voiceGender", description="Fallback gender token ('male' or 'female')"
    )


class RecognizeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    audio_data: str = Field(
        default="", alias="audioData", description="Base64-encoded PCM16 audio, 24kHz mono"
    )


class RecognizeResponse(BaseModel):
    text: str


class ErrorResponse(BaseModel):
    """Body returned with HTTP 500 for any orchestration failure."""

    error: str
    details: str
    type: str = Field(default="Unknown", description="Exception class name")
