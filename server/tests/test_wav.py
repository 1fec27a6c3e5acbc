import struct

import pytest

from realtime_speech.services.wav import WAV_HEADER_SIZE, frame_pcm16


def test_pcm_to_wav_header_and_size():
    # 100 samples of silence (16-bit PCM)
    samples = b"\x00\x00" * 100
    wav = frame_pcm16(samples, sample_rate=24_000, channels=1)
    assert len(wav) == WAV_HEADER_SIZE + len(samples)
    assert wav[:4] == b"RIFF"
    assert wav[8:12] == b"WAVE"
    assert wav[36:40] == b"data"
    (data_len,) = struct.unpack_from("<I", wav, 40)
    assert data_len == len(samples)
    assert wav[WAV_HEADER_SIZE:] == samples


@pytest.mark.parametrize(
    ("sample_rate", "channels", "bits"),
    [(24_000, 1, 16), (16_000, 1, 16), (44_100, 2, 16), (8_000, 1, 8), (48_000, 2, 24)],
)
def test_fmt_chunk_fields(sample_rate, channels, bits):
    pcm = bytes(range(256)) * 3
    wav = frame_pcm16(pcm, sample_rate=sample_rate, channels=channels, bits_per_sample=bits)

    (riff_size,) = struct.unpack_from("<I", wav, 4)
    assert riff_size == 36 + len(pcm)
    assert wav[12:16] == b"fmt "
    fmt_size, fmt_tag, ch, rate, byte_rate, block_align, bits_per_sample = struct.unpack_from(
        "<IHHIIHH", wav, 16
    )
    assert fmt_size == 16
    assert fmt_tag == 1
    assert ch == channels
    assert rate == sample_rate
    assert byte_rate == sample_rate * channels * bits // 8
    assert block_align == channels * bits // 8
    assert bits_per_sample == bits


def test_empty_payload_is_header_only():
    wav = frame_pcm16(b"")
    assert len(wav) == WAV_HEADER_SIZE
    assert struct.unpack_from("<I", wav, 40) == (0,)
