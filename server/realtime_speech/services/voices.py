"""Mapping between Azure neural TTS voice names and realtime API voice tokens."""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

DEFAULT_VOICE = "alloy"

VOICE_CATALOGUE: tuple[dict[str, str], ...] = (
    {"name": "alloy", "description": "Neutral, balanced"},
    {"name": "echo", "description": "Male, clear"},
    {"name": "fable", "description": "Neutral, expressive"},
    {"name": "onyx", "description": "Male, deep"},
    {"name": "nova", "description": "Female, energetic"},
    {"name": "shimmer", "description": "Female, soft"},
)

REALTIME_VOICES = frozenset(entry["name"] for entry in VOICE_CATALOGUE)

_NEURAL_VOICES = {
    "JennyNeural": "alloy",
    "GuyNeural": "echo",
    "AriaNeural": "nova",
    "DavisNeural": "onyx",
    "JaneNeural": "shimmer",
    "JasonNeural": "fable",
    "AndrewNeural": "echo",
    "FableNeural": "fable",
}

_GENDERS = {
    "male": "echo",
    "female": "alloy",
}


def _build_table() -> Mapping[str, str]:
    table: dict[str, str] = {}
    table.update(_GENDERS)
    for short_name, voice in _NEURAL_VOICES.items():
        table[short_name] = voice
        table[f"en-US-{short_name}"] = voice
    table.update({voice: voice for voice in REALTIME_VOICES})
    return MappingProxyType(table)


VOICE_MAP: Mapping[str, str] = _build_table()


def resolve_voice(name: Optional[str] = None, gender: Optional[str] = None) -> str:
    """Pick a realtime voice token: exact ``name`` match, then ``gender``, then the default."""
    if name and name in VOICE_MAP:
        return VOICE_MAP[name]
    if gender and gender in VOICE_MAP:
        return VOICE_MAP[gender]
    return DEFAULT_VOICE
