"""RIFF/WAVE framing for raw PCM produced by the realtime API."""
from __future__ import annotations

import struct

WAV_HEADER_SIZE = 44
REALTIME_SAMPLE_RATE = 24_000


def frame_pcm16(
    pcm: bytes,
    sample_rate: int = REALTIME_SAMPLE_RATE,
    channels: int = 1,
    bits_per_sample: int = 16,
) -> bytes:
    """Wrap little-endian PCM samples into a canonical 44-byte-header WAV container.

    ``bits_per_sample`` must be a multiple of 8; the payload is appended untouched.
    """
    block_align = channels * bits_per_sample // 8
    byte_rate = sample_rate * block_align
    data_size = len(pcm)
    fmt_chunk_size = 16
    riff_chunk_size = 4 + (8 + fmt_chunk_size) + (8 + data_size)

    header = b"RIFF" + struct.pack("<I", riff_chunk_size) + b"WAVE"
    header += b"fmt " + struct.pack(
        "<IHHIIHH", fmt_chunk_size, 1, channels, sample_rate, byte_rate, block_align, bits_per_sample
    )
    header += b"data" + struct.pack("<I", data_size)
    return header + bytes(pcm)
