from concurrent.futures import ThreadPoolExecutor

from realtime_speech.services.stats import InMemoryStatsSink


def test_concurrent_updates_are_not_lost():
    sink = InMemoryStatsSink()
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(sink.record_audio_chars, [3] * 1000))

    assert sink.audio_chars == 3000
    assert sink.snapshot() == {"audio_chars": 3000, "synthesis_requests": 1000}
