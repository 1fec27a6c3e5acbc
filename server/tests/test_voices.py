from realtime_speech.services.voices import DEFAULT_VOICE, REALTIME_VOICES, VOICE_MAP, resolve_voice


def test_name_takes_precedence_over_gender():
    assert resolve_voice("JennyNeural", None) == VOICE_MAP["JennyNeural"] == "alloy"
    assert resolve_voice("GuyNeural", "female") == "echo"


def test_gender_fallback():
    assert resolve_voice(None, "female") == VOICE_MAP["female"]
    assert resolve_voice("unknown-name", "male") == "echo"


def test_unknown_input_uses_default():
    assert resolve_voice("unknown-name", "unknown-gender") == DEFAULT_VOICE
    assert resolve_voice() == DEFAULT_VOICE
    assert DEFAULT_VOICE == "alloy"


def test_lookup_is_case_sensitive():
    assert resolve_voice("jennyneural", "FEMALE") == DEFAULT_VOICE
    assert resolve_voice("Nova") == DEFAULT_VOICE


def test_locale_qualified_names_and_direct_tokens():
    assert resolve_voice("en-US-AriaNeural") == "nova"
    for token in REALTIME_VOICES:
        assert resolve_voice(token) == token


def test_every_mapping_targets_a_realtime_voice():
    assert set(VOICE_MAP.values()) <= REALTIME_VOICES
    assert len(REALTIME_VOICES) == 6
